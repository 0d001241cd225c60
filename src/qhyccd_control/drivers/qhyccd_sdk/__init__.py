"""QHYCCD SDK library location.

Resolves the path of the vendor ``libqhyccd`` shared library for use by the
ctypes binding in ``drivers.native``.

Lookup order:
    1. ``QHYCCD_LIBRARY_PATH`` environment variable
    2. ``<this package>/<arch>/libqhyccd.so`` (vendored copy, if shipped)
    3. ``/usr/local/lib/libqhyccd.so`` (vendor installer default)

Installation (udev rules for USB access):
    sudo cp 85-qhyccd.rules /etc/udev/rules.d/
    sudo udevadm control --reload-rules
    sudo udevadm trigger
"""

import os
import platform
from pathlib import Path

LIBRARY_ENV_VAR = "QHYCCD_LIBRARY_PATH"
LIBRARY_NAME = "libqhyccd.so"
SYSTEM_LIBRARY_DIR = Path("/usr/local/lib")

# Map platform.machine() to vendored library subdirectory
_ARCH_MAP = {
    "x86_64": "x86_64",
    "AMD64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "aarch64",
    "armv7l": "armv7",
}


def get_sdk_library_path() -> str:
    """Get the QHYCCD SDK library path for the current machine.

    Business context: QHY ships separate binaries per architecture; loading
    the wrong one fails with an exec-format error deep inside ctypes. An
    explicit override lets lab machines point at a specific SDK release.

    Returns:
        Path string to an existing library file.

    Raises:
        RuntimeError: If the override points at a missing file, or no
            library is found in the vendored or system locations.

    Example:
        >>> lib_path = get_sdk_library_path()
        >>> lib = ctypes.CDLL(lib_path)
    """
    override = os.environ.get(LIBRARY_ENV_VAR)
    if override:
        if not Path(override).exists():
            raise RuntimeError(
                f"{LIBRARY_ENV_VAR} points to {override}, which does not exist"
            )
        return override

    candidates: list[Path] = []
    arch_dir = _ARCH_MAP.get(platform.machine())
    if arch_dir is not None:
        candidates.append(Path(__file__).parent / arch_dir / LIBRARY_NAME)
    candidates.append(SYSTEM_LIBRARY_DIR / LIBRARY_NAME)

    for lib_path in candidates:
        if lib_path.exists():
            return str(lib_path)

    searched = ", ".join(str(p) for p in candidates)
    raise RuntimeError(
        f"QHYCCD SDK library not found (searched: {searched}). "
        f"Install the vendor SDK or set {LIBRARY_ENV_VAR}."
    )
