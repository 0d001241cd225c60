"""Digital Twin QHYCCD SDK - Simulated Native Library for Testing.

Implements QHYCCDNativeProtocol in pure Python so the SDK context, camera
sessions and capture helpers run end to end without the vendor library or
a USB camera attached.

Behaviour modelled on the vendor library:
    - Status codes: 0 for success, 0xFFFFFFFF for the generic failure
    - scan() fails before init_resource()
    - 32-byte NUL-padded ids from get_id()
    - CAM_COLOR probe returns the Bayer id on colour sensors
    - Single exposure returns QHYCCD_READ_DIRECTLY (0x2001)
    - Live frames report "not ready" via the failure sentinel

Testing hooks:
    - ``fail(method, code, times)``: inject a status code into the next call(s)
    - ``live_not_ready_polls``: not-ready results before each live frame
    - ``calls``: ordered record of every native call and its arguments

Example:
    from qhyccd_control import SDKContext
    from qhyccd_control.drivers.twin import DigitalTwinSDK

    twin = DigitalTwinSDK()
    with SDKContext(twin) as sdk:
        sdk.scan()
        camera = sdk.open_camera(sdk.get_identity(0))
    assert twin.calls_to("open")
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, final

import cv2
import numpy as np

from qhyccd_control.drivers.native import FIRMWARE_BUFFER_LENGTH, FrameResult
from qhyccd_control.errors import (
    QHYCCD_ERROR,
    QHYCCD_READ_DIRECTLY,
    QHYCCD_SUCCESS,
)
from qhyccd_control.features import BayerPattern, CameraFeature, CameraStreamMode
from qhyccd_control.observability import get_logger
from qhyccd_control.types import (
    CAMERA_ID_LENGTH,
    CCDChipInfo,
    CameraIdentity,
    ImageArea,
    SDKVersion,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)

__all__ = [
    "DEFAULT_CAMERAS",
    "DigitalTwinSDK",
    "TwinCameraSpec",
]

# =============================================================================
# Camera Specifications
# =============================================================================

# Handles are opaque pointers on real hardware; start somewhere non-zero
_FIRST_HANDLE = 0x1000

_TWIN_SDK_VERSION = SDKVersion(year=23, month=9, day=6, subday=14)

_MONO_FEATURES = frozenset(
    {
        CameraFeature.CONTROL_GAIN,
        CameraFeature.CONTROL_OFFSET,
        CameraFeature.CONTROL_EXPOSURE,
        CameraFeature.CONTROL_TRANSFERBIT,
        CameraFeature.CONTROL_USBTRAFFIC,
        CameraFeature.CONTROL_DDR,
        CameraFeature.CAM_BIN1X1MODE,
        CameraFeature.CAM_BIN2X2MODE,
        CameraFeature.CAM_8BITS,
        CameraFeature.CAM_16BITS,
        CameraFeature.CAM_SINGLEFRAMEMODE,
        CameraFeature.CAM_LIVEVIDEOMODE,
    }
)


@dataclass(frozen=True)
class TwinCameraSpec:
    """Static description of one simulated camera.

    Attributes:
        name: Device name reported through get_id() (ASCII, < 32 bytes).
        chip_width: Sensor width as reported by GetQHYCCDChipInfo.
        chip_height: Sensor height as reported by GetQHYCCDChipInfo.
        image_width: Maximum image width in pixels.
        image_height: Maximum image height in pixels.
        pixel_width: Pixel pitch in micrometers.
        pixel_height: Pixel pitch in micrometers.
        bits_per_pixel: Native bit depth.
        overscan_area: Calibration reference region.
        effective_area: Active imaging region.
        firmware: Raw firmware bytes (first two encode the build date).
        features: Features the probe reports as supported.
        bayer: Bayer layout for colour sensors, None for mono.
    """

    name: str
    chip_width: float
    chip_height: float
    image_width: int
    image_height: int
    pixel_width: float
    pixel_height: float
    bits_per_pixel: int
    overscan_area: ImageArea
    effective_area: ImageArea
    firmware: bytes = bytes([0x69, 0x05])
    features: frozenset[CameraFeature] = _MONO_FEATURES
    bayer: BayerPattern | None = None

    @property
    def identity(self) -> CameraIdentity:
        """32-byte id reported by get_id() for this camera."""
        return CameraIdentity.from_name(self.name)

    @property
    def chip_info(self) -> CCDChipInfo:
        """Geometry record returned by get_chip_info()."""
        return CCDChipInfo(
            chip_width=self.chip_width,
            chip_height=self.chip_height,
            image_width=self.image_width,
            image_height=self.image_height,
            pixel_width=self.pixel_width,
            pixel_height=self.pixel_height,
            bits_per_pixel=self.bits_per_pixel,
        )


# QHY178M as seen on the bench: 3056x2048, 2.4um pixels, firmware 2022_9_5
QHY178M = TwinCameraSpec(
    name="QHY178M-222b16468c5966524",
    chip_width=7334.4,
    chip_height=4915.2,
    image_width=3056,
    image_height=2048,
    pixel_width=2.4,
    pixel_height=2.4,
    bits_per_pixel=8,
    overscan_area=ImageArea(start_x=0, start_y=0, width=0, height=0),
    effective_area=ImageArea(start_x=0, start_y=0, width=3056, height=2048),
)

# Colour sibling for Bayer and debayer paths
QHY178C = TwinCameraSpec(
    name="QHY178C-5fa1e3d0b2c94a7e1",
    chip_width=7334.4,
    chip_height=4915.2,
    image_width=3056,
    image_height=2048,
    pixel_width=2.4,
    pixel_height=2.4,
    bits_per_pixel=8,
    overscan_area=ImageArea(start_x=0, start_y=0, width=0, height=0),
    effective_area=ImageArea(start_x=0, start_y=0, width=3056, height=2048),
    features=_MONO_FEATURES | {CameraFeature.CAM_COLOR, CameraFeature.CAM_IS_COLOR},
    bayer=BayerPattern.RG,
)

DEFAULT_CAMERAS: Mapping[str, TwinCameraSpec] = MappingProxyType(
    {"QHY178M": QHY178M, "QHY178C": QHY178C}
)


# =============================================================================
# Device State
# =============================================================================


@dataclass
class _TwinDevice:
    """Mutable per-handle state of an opened simulated camera."""

    spec: TwinCameraSpec
    stream_mode: int | None = None
    read_mode: int = 0
    initialized: bool = False
    bits: int = 8
    bin_x: int = 1
    bin_y: int = 1
    roi: ImageArea = field(default_factory=lambda: ImageArea(0, 0, 0, 0))
    debayer: bool = False
    params: dict[int, float] = field(default_factory=dict)
    exposed: bool = False
    live: bool = False
    pending_not_ready: int = 0
    frame_count: int = 0

    def __post_init__(self) -> None:
        self.bits = self.spec.bits_per_pixel
        self.roi = ImageArea(0, 0, self.spec.image_width, self.spec.image_height)

    @property
    def frame_width(self) -> int:
        return self.roi.width // self.bin_x

    @property
    def frame_height(self) -> int:
        return self.roi.height // self.bin_y

    @property
    def channels(self) -> int:
        return 3 if self.debayer and self.spec.bayer is not None else 1

    @property
    def frame_size(self) -> int:
        bytes_per_sample = 1 if self.bits <= 8 else 2
        return self.frame_width * self.frame_height * bytes_per_sample * self.channels


# =============================================================================
# Digital Twin SDK
# =============================================================================


@final
class DigitalTwinSDK:
    """Simulated libqhyccd implementing QHYCCDNativeProtocol.

    Attributes:
        cameras: Simulated cameras in enumeration order.
        live_not_ready_polls: Number of not-ready results returned before
            each live frame is delivered.
        calls: Ordered ``(method, args)`` record of every native call.

    Example:
        twin = DigitalTwinSDK(live_not_ready_polls=3)
        twin.fail("init_camera")          # next InitQHYCCD fails
        twin.fail("scan", times=None)     # every scan fails
    """

    __slots__ = (
        "cameras",
        "live_not_ready_polls",
        "calls",
        "_initialized",
        "_devices",
        "_next_handle",
        "_failures",
    )

    def __init__(
        self,
        cameras: Sequence[TwinCameraSpec] | None = None,
        live_not_ready_polls: int = 0,
    ) -> None:
        """Create a twin with ``cameras`` attached (default: one QHY178M).

        Args:
            cameras: Simulated cameras in enumeration order.
            live_not_ready_polls: Not-ready polls before each live frame.
        """
        self.cameras: list[TwinCameraSpec] = (
            list(cameras) if cameras is not None else [QHY178M]
        )
        self.live_not_ready_polls = live_not_ready_polls
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self._initialized = False
        self._devices: dict[int, _TwinDevice] = {}
        self._next_handle = _FIRST_HANDLE
        # method -> [code, remaining] (remaining None = forever)
        self._failures: dict[str, list[Any]] = {}
        logger.info(
            "Digital twin QHYCCD SDK created",
            cameras=[spec.name for spec in self.cameras],
        )

    def __repr__(self) -> str:
        return (
            f"DigitalTwinSDK(cameras={[spec.name for spec in self.cameras]}, "
            f"open={len(self._devices)})"
        )

    # -- testing hooks -------------------------------------------------------

    def fail(self, method: str, code: int = QHYCCD_ERROR, times: int | None = 1) -> None:
        """Make the next ``times`` calls to ``method`` return ``code``.

        Args:
            method: Protocol method name, e.g. ``"init_camera"``.
            code: Status code to return. For ``open`` any injected failure
                yields a null handle.
            times: Number of calls to fail, None for every call.

        Raises:
            AttributeError: If ``method`` is not a native method.
        """
        if not callable(getattr(self, method, None)) or method.startswith("_"):
            raise AttributeError(f"DigitalTwinSDK has no native method {method!r}")
        self._failures[method] = [code, times]

    def clear_failures(self) -> None:
        self._failures.clear()

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        """Arguments of every recorded call to ``method``, oldest first."""
        return [args for name, args in self.calls if name == method]

    def device(self, handle: int) -> _TwinDevice:
        """Internal state behind ``handle`` (for assertions in tests)."""
        return self._devices[handle]

    def _enter(self, method: str, *args: Any) -> int | None:
        """Record the call and return an injected failure code, if any."""
        self.calls.append((method, args))
        failure = self._failures.get(method)
        if failure is None:
            return None
        code, remaining = failure
        if remaining is not None:
            if remaining <= 1:
                del self._failures[method]
            else:
                failure[1] = remaining - 1
        logger.debug("Injected failure", method=method, code=code)
        return int(code)

    def _lookup(self, handle: int) -> _TwinDevice | None:
        return self._devices.get(handle)

    # -- library lifecycle ---------------------------------------------------

    def init_resource(self) -> int:
        injected = self._enter("init_resource")
        if injected is not None:
            return injected
        self._initialized = True
        return QHYCCD_SUCCESS

    def release_resource(self) -> int:
        injected = self._enter("release_resource")
        if injected is not None:
            return injected
        self._initialized = False
        self._devices.clear()
        return QHYCCD_SUCCESS

    def get_sdk_version(self) -> tuple[int, SDKVersion]:
        injected = self._enter("get_sdk_version")
        if injected is not None:
            return injected, SDKVersion(0, 0, 0, 0)
        return QHYCCD_SUCCESS, _TWIN_SDK_VERSION

    def scan(self) -> int:
        injected = self._enter("scan")
        if injected is not None:
            return injected
        if not self._initialized:
            return QHYCCD_ERROR
        return len(self.cameras)

    def get_id(self, index: int) -> tuple[int, bytes]:
        injected = self._enter("get_id", index)
        if injected is not None:
            return injected, bytes(CAMERA_ID_LENGTH)
        if not 0 <= index < len(self.cameras):
            return QHYCCD_ERROR, bytes(CAMERA_ID_LENGTH)
        return QHYCCD_SUCCESS, self.cameras[index].identity.raw

    # -- device lifecycle ----------------------------------------------------

    def open(self, camera_id: bytes) -> int | None:
        if self._enter("open", camera_id) is not None:
            return None
        if not self._initialized:
            return None
        for spec in self.cameras:
            if spec.identity.raw == bytes(camera_id):
                handle = self._next_handle
                self._next_handle += 1
                self._devices[handle] = _TwinDevice(spec)
                return handle
        return None

    def close(self, handle: int) -> int:
        injected = self._enter("close", handle)
        if injected is not None:
            return injected
        if self._devices.pop(handle, None) is None:
            return QHYCCD_ERROR
        return QHYCCD_SUCCESS

    def get_firmware_version(self, handle: int) -> tuple[int, bytes]:
        injected = self._enter("get_firmware_version", handle)
        device = self._lookup(handle)
        if injected is not None or device is None:
            code = QHYCCD_ERROR if injected is None else injected
            return code, bytes(FIRMWARE_BUFFER_LENGTH)
        return QHYCCD_SUCCESS, device.spec.firmware.ljust(FIRMWARE_BUFFER_LENGTH, b"\0")

    def is_control_available(self, handle: int, feature: int) -> int:
        injected = self._enter("is_control_available", handle, feature)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if device is None or feature not in device.spec.features:
            return QHYCCD_ERROR
        if feature == CameraFeature.CAM_COLOR and device.spec.bayer is not None:
            return int(device.spec.bayer)
        return QHYCCD_SUCCESS

    def set_read_mode(self, handle: int, mode: int) -> int:
        injected = self._enter("set_read_mode", handle, mode)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if device is None:
            return QHYCCD_ERROR
        device.read_mode = mode
        return QHYCCD_SUCCESS

    def set_stream_mode(self, handle: int, mode: int) -> int:
        injected = self._enter("set_stream_mode", handle, mode)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if device is None or mode not in (m.value for m in CameraStreamMode):
            return QHYCCD_ERROR
        device.stream_mode = mode
        return QHYCCD_SUCCESS

    def init_camera(self, handle: int) -> int:
        injected = self._enter("init_camera", handle)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if device is None:
            return QHYCCD_ERROR
        device.initialized = True
        return QHYCCD_SUCCESS

    # -- queries -------------------------------------------------------------

    def get_chip_info(self, handle: int) -> tuple[int, CCDChipInfo]:
        injected = self._enter("get_chip_info", handle)
        device = self._lookup(handle)
        if injected is not None or device is None:
            code = QHYCCD_ERROR if injected is None else injected
            return code, CCDChipInfo(0.0, 0.0, 0, 0, 0.0, 0.0, 0)
        return QHYCCD_SUCCESS, device.spec.chip_info

    def get_overscan_area(self, handle: int) -> tuple[int, ImageArea]:
        injected = self._enter("get_overscan_area", handle)
        device = self._lookup(handle)
        if injected is not None or device is None:
            code = QHYCCD_ERROR if injected is None else injected
            return code, ImageArea(0, 0, 0, 0)
        return QHYCCD_SUCCESS, device.spec.overscan_area

    def get_effective_area(self, handle: int) -> tuple[int, ImageArea]:
        injected = self._enter("get_effective_area", handle)
        device = self._lookup(handle)
        if injected is not None or device is None:
            code = QHYCCD_ERROR if injected is None else injected
            return code, ImageArea(0, 0, 0, 0)
        return QHYCCD_SUCCESS, device.spec.effective_area

    # -- configuration -------------------------------------------------------

    def set_bits_mode(self, handle: int, bits: int) -> int:
        injected = self._enter("set_bits_mode", handle, bits)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if device is None or bits not in (8, 16):
            return QHYCCD_ERROR
        device.bits = bits
        return QHYCCD_SUCCESS

    def set_bin_mode(self, handle: int, bin_x: int, bin_y: int) -> int:
        injected = self._enter("set_bin_mode", handle, bin_x, bin_y)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if device is None or bin_x not in (1, 2, 3, 4) or bin_y not in (1, 2, 3, 4):
            return QHYCCD_ERROR
        if device.roi.width < bin_x or device.roi.height < bin_y:
            return QHYCCD_ERROR
        device.bin_x, device.bin_y = bin_x, bin_y
        return QHYCCD_SUCCESS

    def set_resolution(
        self, handle: int, start_x: int, start_y: int, width: int, height: int
    ) -> int:
        injected = self._enter("set_resolution", handle, start_x, start_y, width, height)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if device is None:
            return QHYCCD_ERROR
        full = ImageArea(0, 0, device.spec.image_width, device.spec.image_height)
        roi = ImageArea(start_x, start_y, width, height)
        if width <= 0 or height <= 0 or not full.contains(roi):
            return QHYCCD_ERROR
        # Binned frame must keep at least one pixel per axis
        if width < device.bin_x or height < device.bin_y:
            return QHYCCD_ERROR
        device.roi = roi
        return QHYCCD_SUCCESS

    def set_debayer(self, handle: int, on: bool) -> int:
        injected = self._enter("set_debayer", handle, on)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if device is None or (on and device.spec.bayer is None):
            return QHYCCD_ERROR
        device.debayer = bool(on)
        return QHYCCD_SUCCESS

    def set_param(self, handle: int, feature: int, value: float) -> int:
        # Like the vendor library, unsupported controls are not rejected
        injected = self._enter("set_param", handle, feature, value)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if device is None:
            return QHYCCD_ERROR
        device.params[feature] = value
        if feature == CameraFeature.CONTROL_TRANSFERBIT and int(value) in (8, 16):
            device.bits = int(value)
        return QHYCCD_SUCCESS

    # -- capture -------------------------------------------------------------

    def exp_single_frame(self, handle: int) -> int:
        injected = self._enter("exp_single_frame", handle)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if (
            device is None
            or not device.initialized
            or device.stream_mode != CameraStreamMode.SINGLE_FRAME
        ):
            return QHYCCD_ERROR
        device.exposed = True
        return QHYCCD_READ_DIRECTLY

    def get_single_frame(self, handle: int, buffer: bytearray) -> FrameResult:
        injected = self._enter("get_single_frame", handle, len(buffer))
        device = self._lookup(handle)
        if injected is not None or device is None or not device.exposed:
            code = QHYCCD_ERROR if injected is None else injected
            return code, 0, 0, 0, 0
        result = self._fill(device, buffer)
        if result[0] == QHYCCD_SUCCESS:
            device.exposed = False
        return result

    def begin_live(self, handle: int) -> int:
        injected = self._enter("begin_live", handle)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if (
            device is None
            or not device.initialized
            or device.stream_mode != CameraStreamMode.LIVE
        ):
            return QHYCCD_ERROR
        device.live = True
        device.pending_not_ready = self.live_not_ready_polls
        return QHYCCD_SUCCESS

    def stop_live(self, handle: int) -> int:
        injected = self._enter("stop_live", handle)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if device is None or not device.live:
            return QHYCCD_ERROR
        device.live = False
        return QHYCCD_SUCCESS

    def get_mem_length(self, handle: int) -> int:
        injected = self._enter("get_mem_length", handle)
        if injected is not None:
            return injected
        device = self._lookup(handle)
        if device is None:
            return QHYCCD_ERROR
        return device.frame_size

    def get_live_frame(self, handle: int, buffer: bytearray) -> FrameResult:
        injected = self._enter("get_live_frame", handle, len(buffer))
        device = self._lookup(handle)
        if injected is not None or device is None or not device.live:
            code = QHYCCD_ERROR if injected is None else injected
            return code, 0, 0, 0, 0
        if device.pending_not_ready > 0:
            device.pending_not_ready -= 1
            return QHYCCD_ERROR, 0, 0, 0, 0
        result = self._fill(device, buffer)
        device.pending_not_ready = self.live_not_ready_polls
        return result

    # -- frame synthesis -----------------------------------------------------

    def _fill(self, device: _TwinDevice, buffer: bytearray) -> FrameResult:
        """Write a synthetic frame into ``buffer`` like GetQHYCCD*Frame does."""
        if len(buffer) < device.frame_size:
            return QHYCCD_ERROR, 0, 0, 0, 0

        frame = _synthetic_frame(
            device.frame_width,
            device.frame_height,
            device.bits,
            device.channels,
            device.frame_count,
        )
        payload = frame.tobytes()
        buffer[: len(payload)] = payload
        device.frame_count += 1
        return (
            QHYCCD_SUCCESS,
            device.frame_width,
            device.frame_height,
            device.bits,
            device.channels,
        )


def _synthetic_frame(
    width: int, height: int, bits: int, channels: int, index: int
) -> NDArray[Any]:
    """Diagonal gradient with a crosshair, shifted by ``index`` per frame."""
    dtype = np.uint8 if bits <= 8 else np.uint16
    peak = np.iinfo(dtype).max

    ys = np.arange(height, dtype=np.uint32)[:, np.newaxis]
    xs = np.arange(width, dtype=np.uint32)[np.newaxis, :]
    gradient = (xs + ys + index) % 256 * (peak // 255)
    img = gradient.astype(dtype)

    if channels > 1:
        img = np.ascontiguousarray(np.repeat(img[:, :, np.newaxis], channels, axis=2))
        color: Any = (peak,) * channels
    else:
        color = int(peak)

    cv2.line(img, (width // 2, 0), (width // 2, height - 1), color, 1)
    cv2.line(img, (0, height // 2), (width - 1, height // 2), color, 1)
    return img
