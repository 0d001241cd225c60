"""Native SDK configuration and factory.

Supports switching between the real vendor library (loaded with ctypes) and
the digital twin for testing and development without a camera attached.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

from qhyccd_control.drivers.qhyccd_sdk import LIBRARY_ENV_VAR
from qhyccd_control.observability import get_logger

if TYPE_CHECKING:
    from qhyccd_control.drivers.native import QHYCCDNativeProtocol
    from qhyccd_control.sdk import SDKContext

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

MODE_ENV_VAR = "QHYCCD_MODE"
DEFAULT_TWIN_CAMERA = "QHY178M"


class SDKMode(Enum):
    """Native layer selection."""

    HARDWARE = "hardware"  # Vendor libqhyccd via ctypes
    DIGITAL_TWIN = "digital_twin"  # In-memory simulation


@dataclass
class SDKConfig:
    """Configuration for native layer selection.

    Attributes:
        mode: HARDWARE for the vendor library, DIGITAL_TWIN for simulation.
        library_path: Explicit libqhyccd path; None searches the default
            locations (see ``drivers.qhyccd_sdk``).
        twin_camera: Key into ``twin.DEFAULT_CAMERAS`` for the simulated
            camera attached in DIGITAL_TWIN mode.
        twin_not_ready_polls: Live polls the twin answers "not ready"
            before each frame.
    """

    mode: SDKMode = SDKMode.DIGITAL_TWIN
    library_path: str | None = None
    twin_camera: str = DEFAULT_TWIN_CAMERA
    twin_not_ready_polls: int = 0

    @classmethod
    def from_env(cls) -> SDKConfig:
        """Build a config from ``QHYCCD_MODE`` and ``QHYCCD_LIBRARY_PATH``.

        ``QHYCCD_MODE`` accepts ``hardware`` or ``digital_twin`` (also
        ``twin``), case-insensitive. Unset variables keep the defaults.

        Raises:
            ValueError: If ``QHYCCD_MODE`` holds an unknown value.

        Example:
            >>> os.environ["QHYCCD_MODE"] = "hardware"
            >>> SDKConfig.from_env().mode
            <SDKMode.HARDWARE: 'hardware'>
        """
        raw_mode = os.environ.get(MODE_ENV_VAR, "").strip().lower()
        if not raw_mode:
            mode = SDKMode.DIGITAL_TWIN
        elif raw_mode == "twin":
            mode = SDKMode.DIGITAL_TWIN
        else:
            try:
                mode = SDKMode(raw_mode)
            except ValueError:
                raise ValueError(
                    f"{MODE_ENV_VAR} must be 'hardware' or 'digital_twin', "
                    f"got {raw_mode!r}"
                ) from None
        return cls(mode=mode, library_path=os.environ.get(LIBRARY_ENV_VAR) or None)


class SDKFactory:
    """Factory for the native layer and the SDK context wrapping it.

    Thread Safety:
        Not thread-safe. Configure once at startup before spawning threads.

    Hardware Mode Limitations:
        create_native() requires the vendor library to be installed and
        loadable; no camera needs to be attached until scan().
    """

    def __init__(self, config: SDKConfig | None = None):
        """Store ``config`` (default: digital twin) for later create_* calls.

        Business context: single switch point between bench hardware and
        simulation. Application code asks the factory for a context and
        never imports the ctypes binding or the twin directly, so CI and
        demos run the same code path as the observatory.
        """
        self.config = config or SDKConfig()

    def create_native(self) -> QHYCCDNativeProtocol:
        """Create the native layer for the configured mode.

        Returns:
            QHYCCDLibrary in HARDWARE mode, DigitalTwinSDK in DIGITAL_TWIN mode.

        Raises:
            RuntimeError: In HARDWARE mode if the library cannot be found or
                loaded.
            KeyError: In DIGITAL_TWIN mode if ``twin_camera`` is unknown.
        """
        if self.config.mode == SDKMode.HARDWARE:
            from qhyccd_control.drivers.native import load_library

            return load_library(self.config.library_path)

        from qhyccd_control.drivers.twin import DEFAULT_CAMERAS, DigitalTwinSDK

        if self.config.twin_camera not in DEFAULT_CAMERAS:
            known = ", ".join(DEFAULT_CAMERAS)
            raise KeyError(
                f"Unknown twin camera {self.config.twin_camera!r} (known: {known})"
            )
        return DigitalTwinSDK(
            cameras=[DEFAULT_CAMERAS[self.config.twin_camera]],
            live_not_ready_polls=self.config.twin_not_ready_polls,
        )

    def create_context(self) -> SDKContext:
        """Create an uninitialized SDKContext over a fresh native layer.

        Example:
            >>> with get_factory().create_context() as sdk:
            ...     print(sdk.scan())
        """
        from qhyccd_control.sdk import SDKContext

        native = self.create_native()
        logger.info("Created SDK context", mode=self.config.mode.value)
        return SDKContext(native)


# =============================================================================
# Global Singleton
# =============================================================================
# Not thread-safe: configure once at startup before starting worker threads.

_factory: SDKFactory | None = None


def get_factory() -> SDKFactory:
    """Return the global factory, creating a digital-twin one on first use."""
    global _factory
    if _factory is None:
        _factory = SDKFactory()
    return _factory


def configure(config: SDKConfig) -> None:
    """Replace the global factory with one using ``config``.

    Example:
        >>> configure(SDKConfig.from_env())
    """
    global _factory
    _factory = SDKFactory(config)


def use_digital_twin(preserve_config: bool = False) -> None:
    """Switch the global factory to the digital twin.

    Args:
        preserve_config: Keep library path and twin settings, change only
            the mode. False resets everything to defaults.
    """
    if preserve_config:
        configure(replace(get_factory().config, mode=SDKMode.DIGITAL_TWIN))
    else:
        configure(SDKConfig(mode=SDKMode.DIGITAL_TWIN))


def use_hardware(preserve_config: bool = False, library_path: str | None = None) -> None:
    """Switch the global factory to the vendor library.

    Args:
        preserve_config: Keep library path and twin settings, change only
            the mode. False resets everything to defaults.
        library_path: Explicit libqhyccd path; overrides a preserved one.
    """
    config = (
        replace(get_factory().config, mode=SDKMode.HARDWARE)
        if preserve_config
        else SDKConfig(mode=SDKMode.HARDWARE)
    )
    if library_path is not None:
        config.library_path = library_path
    configure(config)
