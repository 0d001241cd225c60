"""Native boundary to the vendor QHYCCD library.

Everything that crosses into C lives here. The rest of the package talks to
the SDK only through ``QHYCCDNativeProtocol``, which has two
implementations:

- ``QHYCCDLibrary``: ctypes binding to ``libqhyccd`` (real hardware)
- ``drivers.twin.DigitalTwinSDK``: in-memory simulation (tests, demos)

Conventions:
    * Every method returns the raw unsigned 32-bit status code first.
    * C out-parameters come back as extra tuple members, already converted
      to ``types`` records where the shape is fixed.
    * Handles are opaque ints (the pointer value); ``open`` returns ``None``
      or ``0`` for a null handle.
    * Frame buffers are caller-allocated ``bytearray`` objects filled in
      place, exactly as the C API expects.

Example:
    from qhyccd_control.drivers.native import load_library

    native = load_library()  # resolves libqhyccd for this platform
    rc = native.init_resource()
"""

from __future__ import annotations

import ctypes
from ctypes import POINTER, c_bool, c_char_p, c_double, c_uint8, c_uint32, c_void_p
from typing import Protocol, final, runtime_checkable

from qhyccd_control.drivers.qhyccd_sdk import get_sdk_library_path
from qhyccd_control.observability import get_logger
from qhyccd_control.types import (
    CAMERA_ID_LENGTH,
    CCDChipInfo,
    ImageArea,
    SDKVersion,
)

logger = get_logger(__name__)

__all__ = [
    "FIRMWARE_BUFFER_LENGTH",
    "FrameResult",
    "QHYCCDLibrary",
    "QHYCCDNativeProtocol",
    "load_library",
]

#: Size of the buffer filled by GetQHYCCDFWVersion (bytes).
FIRMWARE_BUFFER_LENGTH = 32

#: (status, width, height, bits_per_pixel, channels)
FrameResult = tuple[int, int, int, int, int]


# =============================================================================
# Protocol
# =============================================================================


@runtime_checkable
class QHYCCDNativeProtocol(Protocol):  # pragma: no cover
    """Fixed call surface of the vendor library.

    Implement this protocol to drive the SDK context and sessions without
    hardware. Method names follow the C functions they wrap
    (``scan`` -> ScanQHYCCD, ``set_resolution`` -> SetQHYCCDResolution, ...).
    """

    def init_resource(self) -> int:
        """InitQHYCCDResource."""
        ...

    def release_resource(self) -> int:
        """ReleaseQHYCCDResource."""
        ...

    def get_sdk_version(self) -> tuple[int, SDKVersion]:
        """GetQHYCCDSDKVersion."""
        ...

    def scan(self) -> int:
        """ScanQHYCCD: device count, or the failure sentinel."""
        ...

    def get_id(self, index: int) -> tuple[int, bytes]:
        """GetQHYCCDId: status and the 32-byte id buffer."""
        ...

    def open(self, camera_id: bytes) -> int | None:
        """OpenQHYCCD: opaque handle, None/0 when the open failed."""
        ...

    def close(self, handle: int) -> int:
        """CloseQHYCCD."""
        ...

    def get_firmware_version(self, handle: int) -> tuple[int, bytes]:
        """GetQHYCCDFWVersion: status and the raw 32-byte version buffer."""
        ...

    def is_control_available(self, handle: int, feature: int) -> int:
        """IsQHYCCDControlAvailable: sentinel when absent."""
        ...

    def set_read_mode(self, handle: int, mode: int) -> int:
        """SetQHYCCDReadMode."""
        ...

    def set_stream_mode(self, handle: int, mode: int) -> int:
        """SetQHYCCDStreamMode (mode passed as a byte)."""
        ...

    def init_camera(self, handle: int) -> int:
        """InitQHYCCD."""
        ...

    def get_chip_info(self, handle: int) -> tuple[int, CCDChipInfo]:
        """GetQHYCCDChipInfo."""
        ...

    def get_overscan_area(self, handle: int) -> tuple[int, ImageArea]:
        """GetQHYCCDOverScanArea."""
        ...

    def get_effective_area(self, handle: int) -> tuple[int, ImageArea]:
        """GetQHYCCDEffectiveArea."""
        ...

    def set_bits_mode(self, handle: int, bits: int) -> int:
        """SetQHYCCDBitsMode."""
        ...

    def set_bin_mode(self, handle: int, bin_x: int, bin_y: int) -> int:
        """SetQHYCCDBinMode."""
        ...

    def set_resolution(
        self, handle: int, start_x: int, start_y: int, width: int, height: int
    ) -> int:
        """SetQHYCCDResolution."""
        ...

    def set_debayer(self, handle: int, on: bool) -> int:
        """SetQHYCCDDebayerOnOff."""
        ...

    def set_param(self, handle: int, feature: int, value: float) -> int:
        """SetQHYCCDParam."""
        ...

    def exp_single_frame(self, handle: int) -> int:
        """ExpQHYCCDSingleFrame (blocks for the exposure)."""
        ...

    def get_single_frame(self, handle: int, buffer: bytearray) -> FrameResult:
        """GetQHYCCDSingleFrame, filling ``buffer`` in place."""
        ...

    def begin_live(self, handle: int) -> int:
        """BeginQHYCCDLive."""
        ...

    def stop_live(self, handle: int) -> int:
        """StopQHYCCDLive."""
        ...

    def get_mem_length(self, handle: int) -> int:
        """GetQHYCCDMemLength: buffer size, or the failure sentinel."""
        ...

    def get_live_frame(self, handle: int, buffer: bytearray) -> FrameResult:
        """GetQHYCCDLiveFrame, filling ``buffer`` in place."""
        ...


# =============================================================================
# ctypes Binding
# =============================================================================

_u32p = POINTER(c_uint32)
_dblp = POINTER(c_double)

# name -> (argtypes, restype)
_SIGNATURES: dict[str, tuple[list[type], type | None]] = {
    "InitQHYCCDResource": ([], c_uint32),
    "ReleaseQHYCCDResource": ([], c_uint32),
    "GetQHYCCDSDKVersion": ([_u32p, _u32p, _u32p, _u32p], c_uint32),
    "ScanQHYCCD": ([], c_uint32),
    "GetQHYCCDId": ([c_uint32, c_char_p], c_uint32),
    "OpenQHYCCD": ([c_char_p], c_void_p),
    "CloseQHYCCD": ([c_void_p], c_uint32),
    "GetQHYCCDFWVersion": ([c_void_p, POINTER(c_uint8)], c_uint32),
    "IsQHYCCDControlAvailable": ([c_void_p, c_uint32], c_uint32),
    "SetQHYCCDReadMode": ([c_void_p, c_uint32], c_uint32),
    "SetQHYCCDStreamMode": ([c_void_p, c_uint8], c_uint32),
    "InitQHYCCD": ([c_void_p], c_uint32),
    "GetQHYCCDChipInfo": (
        [c_void_p, _dblp, _dblp, _u32p, _u32p, _dblp, _dblp, _u32p],
        c_uint32,
    ),
    "GetQHYCCDOverScanArea": ([c_void_p, _u32p, _u32p, _u32p, _u32p], c_uint32),
    "GetQHYCCDEffectiveArea": ([c_void_p, _u32p, _u32p, _u32p, _u32p], c_uint32),
    "SetQHYCCDBitsMode": ([c_void_p, c_uint32], c_uint32),
    "SetQHYCCDBinMode": ([c_void_p, c_uint32, c_uint32], c_uint32),
    "SetQHYCCDResolution": (
        [c_void_p, c_uint32, c_uint32, c_uint32, c_uint32],
        c_uint32,
    ),
    "SetQHYCCDDebayerOnOff": ([c_void_p, c_bool], c_uint32),
    "SetQHYCCDParam": ([c_void_p, c_uint32, c_double], c_uint32),
    "ExpQHYCCDSingleFrame": ([c_void_p], c_uint32),
    "GetQHYCCDSingleFrame": (
        [c_void_p, _u32p, _u32p, _u32p, _u32p, POINTER(c_uint8)],
        c_uint32,
    ),
    "BeginQHYCCDLive": ([c_void_p], c_uint32),
    "StopQHYCCDLive": ([c_void_p], c_uint32),
    "GetQHYCCDMemLength": ([c_void_p], c_uint32),
    "GetQHYCCDLiveFrame": (
        [c_void_p, _u32p, _u32p, _u32p, _u32p, POINTER(c_uint8)],
        c_uint32,
    ),
}


def _byte_pointer(buffer: bytearray) -> ctypes.Array[c_uint8]:
    """Expose a bytearray to C without copying."""
    return (c_uint8 * len(buffer)).from_buffer(buffer)


@final
class QHYCCDLibrary:
    """ctypes binding implementing QHYCCDNativeProtocol.

    Declares argtypes/restype for every function up front, so a missing
    symbol fails at load time rather than in the middle of a capture.
    """

    __slots__ = ("_lib", "path")

    def __init__(self, library: ctypes.CDLL, path: str = "") -> None:
        """Bind to an already-loaded CDLL.

        Args:
            library: Loaded vendor library (or a stand-in exposing the same
                symbols).
            path: Filesystem path, kept for diagnostics.

        Raises:
            RuntimeError: If a required symbol is missing.
        """
        self._lib = library
        self.path = path
        for name, (argtypes, restype) in _SIGNATURES.items():
            try:
                func = getattr(library, name)
            except AttributeError as e:
                raise RuntimeError(
                    f"QHYCCD library {path or library!r} is missing symbol {name}"
                ) from e
            func.argtypes = argtypes
            func.restype = restype

    # -- process-wide --------------------------------------------------------

    def init_resource(self) -> int:
        return int(self._lib.InitQHYCCDResource())

    def release_resource(self) -> int:
        return int(self._lib.ReleaseQHYCCDResource())

    def get_sdk_version(self) -> tuple[int, SDKVersion]:
        year, month, day, subday = c_uint32(), c_uint32(), c_uint32(), c_uint32()
        rc = self._lib.GetQHYCCDSDKVersion(
            ctypes.byref(year), ctypes.byref(month), ctypes.byref(day),
            ctypes.byref(subday),
        )
        return int(rc), SDKVersion(year.value, month.value, day.value, subday.value)

    def scan(self) -> int:
        return int(self._lib.ScanQHYCCD())

    def get_id(self, index: int) -> tuple[int, bytes]:
        buffer = ctypes.create_string_buffer(CAMERA_ID_LENGTH)
        rc = self._lib.GetQHYCCDId(index, buffer)
        return int(rc), buffer.raw

    # -- device --------------------------------------------------------------

    def open(self, camera_id: bytes) -> int | None:
        handle: int | None = self._lib.OpenQHYCCD(camera_id)
        return handle

    def close(self, handle: int) -> int:
        return int(self._lib.CloseQHYCCD(handle))

    def get_firmware_version(self, handle: int) -> tuple[int, bytes]:
        buffer = bytearray(FIRMWARE_BUFFER_LENGTH)
        rc = self._lib.GetQHYCCDFWVersion(handle, _byte_pointer(buffer))
        return int(rc), bytes(buffer)

    def is_control_available(self, handle: int, feature: int) -> int:
        return int(self._lib.IsQHYCCDControlAvailable(handle, feature))

    def set_read_mode(self, handle: int, mode: int) -> int:
        return int(self._lib.SetQHYCCDReadMode(handle, mode))

    def set_stream_mode(self, handle: int, mode: int) -> int:
        return int(self._lib.SetQHYCCDStreamMode(handle, mode))

    def init_camera(self, handle: int) -> int:
        return int(self._lib.InitQHYCCD(handle))

    def get_chip_info(self, handle: int) -> tuple[int, CCDChipInfo]:
        chipw, chiph, pixelw, pixelh = c_double(), c_double(), c_double(), c_double()
        imagew, imageh, bpp = c_uint32(), c_uint32(), c_uint32()
        rc = self._lib.GetQHYCCDChipInfo(
            handle,
            ctypes.byref(chipw), ctypes.byref(chiph),
            ctypes.byref(imagew), ctypes.byref(imageh),
            ctypes.byref(pixelw), ctypes.byref(pixelh),
            ctypes.byref(bpp),
        )
        info = CCDChipInfo(
            chip_width=chipw.value,
            chip_height=chiph.value,
            image_width=imagew.value,
            image_height=imageh.value,
            pixel_width=pixelw.value,
            pixel_height=pixelh.value,
            bits_per_pixel=bpp.value,
        )
        return int(rc), info

    def _get_area(self, func: ctypes._CFuncPtr, handle: int) -> tuple[int, ImageArea]:
        x, y, w, h = c_uint32(), c_uint32(), c_uint32(), c_uint32()
        rc = func(
            handle, ctypes.byref(x), ctypes.byref(y), ctypes.byref(w), ctypes.byref(h)
        )
        return int(rc), ImageArea(x.value, y.value, w.value, h.value)

    def get_overscan_area(self, handle: int) -> tuple[int, ImageArea]:
        return self._get_area(self._lib.GetQHYCCDOverScanArea, handle)

    def get_effective_area(self, handle: int) -> tuple[int, ImageArea]:
        return self._get_area(self._lib.GetQHYCCDEffectiveArea, handle)

    def set_bits_mode(self, handle: int, bits: int) -> int:
        return int(self._lib.SetQHYCCDBitsMode(handle, bits))

    def set_bin_mode(self, handle: int, bin_x: int, bin_y: int) -> int:
        return int(self._lib.SetQHYCCDBinMode(handle, bin_x, bin_y))

    def set_resolution(
        self, handle: int, start_x: int, start_y: int, width: int, height: int
    ) -> int:
        return int(self._lib.SetQHYCCDResolution(handle, start_x, start_y, width, height))

    def set_debayer(self, handle: int, on: bool) -> int:
        return int(self._lib.SetQHYCCDDebayerOnOff(handle, on))

    def set_param(self, handle: int, feature: int, value: float) -> int:
        return int(self._lib.SetQHYCCDParam(handle, feature, value))

    # -- capture -------------------------------------------------------------

    def exp_single_frame(self, handle: int) -> int:
        return int(self._lib.ExpQHYCCDSingleFrame(handle))

    def _read_frame(
        self, func: ctypes._CFuncPtr, handle: int, buffer: bytearray
    ) -> FrameResult:
        w, h, bpp, channels = c_uint32(), c_uint32(), c_uint32(), c_uint32()
        rc = func(
            handle,
            ctypes.byref(w), ctypes.byref(h), ctypes.byref(bpp), ctypes.byref(channels),
            _byte_pointer(buffer),
        )
        return int(rc), w.value, h.value, bpp.value, channels.value

    def get_single_frame(self, handle: int, buffer: bytearray) -> FrameResult:
        return self._read_frame(self._lib.GetQHYCCDSingleFrame, handle, buffer)

    def begin_live(self, handle: int) -> int:
        return int(self._lib.BeginQHYCCDLive(handle))

    def stop_live(self, handle: int) -> int:
        return int(self._lib.StopQHYCCDLive(handle))

    def get_mem_length(self, handle: int) -> int:
        return int(self._lib.GetQHYCCDMemLength(handle))

    def get_live_frame(self, handle: int, buffer: bytearray) -> FrameResult:
        return self._read_frame(self._lib.GetQHYCCDLiveFrame, handle, buffer)


def load_library(path: str | None = None) -> QHYCCDLibrary:
    """Load libqhyccd and return the bound native interface.

    Args:
        path: Explicit library path. None resolves the platform default via
            ``get_sdk_library_path()``.

    Returns:
        QHYCCDLibrary ready for use by an SDKContext.

    Raises:
        RuntimeError: If the library cannot be found, loaded, or lacks a
            required symbol.

    Example:
        >>> native = load_library("/usr/local/lib/libqhyccd.so")
    """
    lib_path = path or get_sdk_library_path()
    try:
        library = ctypes.CDLL(lib_path)
    except OSError as e:
        logger.error("Failed to load QHYCCD library", path=lib_path, error=str(e))
        raise RuntimeError(f"Cannot load QHYCCD library {lib_path}: {e}") from e

    logger.info("QHYCCD library loaded", path=lib_path)
    return QHYCCDLibrary(library, lib_path)
