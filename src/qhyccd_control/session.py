"""Camera session: handle ownership, capability probes, configuration, capture.

A ``CameraSession`` pairs an immutable ``CameraIdentity`` with the opaque
native handle returned by OpenQHYCCD. Every device-scoped call is a method
on the session, and each checks the session state before touching the
native layer, so out-of-order calls fail with a Python exception instead of
undefined SDK behaviour.

State machine::

    CREATED --open--> OPENED --set_stream_mode/set_read_mode--> STREAM_CONFIGURED
        --initialize--> INITIALIZED <--> CAPTURING
    any non-CLOSED state --close--> CLOSED

Capture branches (chosen by the stream mode):
    single frame: start_single_exposure -> query_image_size ->
        retrieve_single_frame
    live: begin_live -> query_image_size -> poll_live_frame* -> end_live

Thread Safety:
    A session is owned by one thread of control at a time. The SDK gives
    no guarantees for concurrent calls on the same handle, so callers that
    share a session across threads must serialize access themselves.

Example:
    session = sdk.open_camera(sdk.get_identity(0))
    session.set_stream_mode(CameraStreamMode.SINGLE_FRAME)
    session.set_read_mode(0)
    session.initialize()
    session.set_parameter_if_supported(CameraFeature.CONTROL_GAIN, 10)
    session.set_parameter(CameraFeature.CONTROL_EXPOSURE, 2000)
    session.start_single_exposure()
    size = session.query_image_size()
    image = session.retrieve_single_frame(size)
    session.close()
"""

from __future__ import annotations

import time
from enum import Enum
from types import TracebackType
from typing import TYPE_CHECKING, Any

from qhyccd_control.errors import (
    QHYCCD_READ_DIRECTLY,
    QHYCCD_SUCCESS,
    BinModeSetError,
    BitModeSetError,
    BufferSizeError,
    CameraInitError,
    ChipInfoQueryError,
    CloseError,
    DebayerSetError,
    EffectiveAreaQueryError,
    FirmwareVersionReadError,
    ImageSizeQueryError,
    LiveBeginError,
    LiveEndError,
    LiveFrameReadError,
    NativeCallError,
    OpenError,
    OverscanAreaQueryError,
    ParameterSetError,
    ReadModeSetError,
    ROISetError,
    SessionStateError,
    SingleExposureError,
    SingleFrameReadError,
    StreamModeMismatchError,
    StreamModeSetError,
    check_status,
    is_generic_failure,
    normalize_code,
)
from qhyccd_control.features import BayerPattern, CameraFeature, CameraStreamMode
from qhyccd_control.observability import get_logger
from qhyccd_control.types import CCDChipInfo, CameraIdentity, ImageArea, ImageData

if TYPE_CHECKING:
    from qhyccd_control.drivers.native import FrameResult, QHYCCDNativeProtocol
    from qhyccd_control.sdk import SDKContext

logger = get_logger(__name__)

__all__ = ["CameraSession", "SessionState", "decode_firmware_version"]

# Parameters that change the frame layout, like set_bit_mode does
_LAYOUT_FEATURES = frozenset(
    {CameraFeature.CONTROL_TRANSFERBIT, CameraFeature.CONTROL_CHANNELS}
)


class SessionState(Enum):
    """Lifecycle states of a CameraSession."""

    CREATED = "created"  # identity known, no handle
    OPENED = "opened"  # handle acquired
    STREAM_CONFIGURED = "stream_configured"  # stream/read mode chosen
    INITIALIZED = "initialized"  # InitQHYCCD done
    CAPTURING = "capturing"  # exposure or live stream active
    CLOSED = "closed"  # terminal, handle released


_HANDLE_STATES = frozenset(
    {
        SessionState.OPENED,
        SessionState.STREAM_CONFIGURED,
        SessionState.INITIALIZED,
        SessionState.CAPTURING,
    }
)
_READY_STATES = frozenset({SessionState.INITIALIZED, SessionState.CAPTURING})


def decode_firmware_version(raw: bytes) -> str:
    """Decode the two leading firmware bytes into ``Firmware version: 20Y_M_D``.

    Vendor quirk: the high nibble of the first byte is the year offset. When
    it is 0-9 the year component is ``nibble + 0x10`` (so 2 -> 18); for A-F
    the nibble value itself is used. The low nibble is the month and the
    second byte is the day.

    Args:
        raw: Buffer from GetQHYCCDFWVersion (at least two bytes).

    Returns:
        Human-readable version string.

    Raises:
        ValueError: If fewer than two bytes are given.

    Example:
        >>> decode_firmware_version(bytes([0x22, 0x05]))
        'Firmware version: 2018_2_5'
        >>> decode_firmware_version(bytes([0xA9, 0x05]))
        'Firmware version: 2010_9_5'
    """
    if len(raw) < 2:
        raise ValueError(f"Firmware version needs 2 bytes, got {len(raw)}")

    high = raw[0] >> 4
    year = high + 0x10 if high <= 9 else high
    return f"Firmware version: 20{year}_{raw[0] & 0x0F}_{raw[1]}"


class CameraSession:
    """One opened camera, owned by a single thread of control.

    Equality is identity-and-handle equality; the hash covers the identity
    alone, so a session stays findable in sets and dicts after it closes.
    The handle is only used while the session is OPENED or later and is
    dropped on close.

    Supports the context manager protocol; leaving the block closes the
    session if it is still open.
    """

    __slots__ = (
        "_sdk",
        "_identity",
        "_handle",
        "_state",
        "_generation",
        "_stream_mode",
        "_read_mode",
        "_initialized",
        "_image_size",
        "_effective_area",
    )

    def __init__(self, sdk: SDKContext, identity: CameraIdentity) -> None:
        """Create a session in the CREATED state. No native call is made.

        Args:
            sdk: Context the session's handle will belong to.
            identity: Identity from ``SDKContext.get_identity``; retained for
                the session's lifetime and never modified.
        """
        self._sdk = sdk
        self._identity = identity
        self._handle: int | None = None
        self._state = SessionState.CREATED
        self._generation = sdk.generation
        self._stream_mode: CameraStreamMode | None = None
        self._read_mode: int | None = None
        self._initialized = False
        self._image_size: int | None = None
        self._effective_area: ImageArea | None = None

    def __repr__(self) -> str:
        return (
            f"<CameraSession {self._identity.name!r} state={self._state.value} "
            f"handle={self._handle!r}>"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CameraSession):
            return NotImplemented
        return self._identity == other._identity and self._handle == other._handle

    def __hash__(self) -> int:
        # Identity only: the handle is dropped on close
        return hash(self._identity)

    def __enter__(self) -> CameraSession:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close on exit. A session orphaned by SDK release is only marked closed."""
        if self._state is SessionState.CLOSED:
            return
        if not self._belongs_to_live_sdk():
            logger.warning(
                "Dropping session from released SDK cycle without native close",
                camera=self.name,
            )
            self._mark_closed()
            return
        self.close()

    # -- properties ----------------------------------------------------------

    @property
    def identity(self) -> CameraIdentity:
        """Identity the session was created for; never modified.

        Returns:
            The same 32-byte CameraIdentity passed to the constructor.
        """
        return self._identity

    @property
    def name(self) -> str:
        """Device name decoded from the identity, for logs and messages.

        Example:
            >>> session.name
            'QHY178M-222b16468c5966524'
        """
        return self._identity.name

    @property
    def handle(self) -> int | None:
        """Opaque native handle, None before open and after close."""
        return self._handle

    @property
    def state(self) -> SessionState:
        """Current lifecycle state (see the module docstring diagram)."""
        return self._state

    @property
    def stream_mode(self) -> CameraStreamMode | None:
        """Capture branch chosen by set_stream_mode(), None until then."""
        return self._stream_mode

    @property
    def read_mode(self) -> int | None:
        """Sensor read mode chosen by set_read_mode(), None until then."""
        return self._read_mode

    @property
    def image_size(self) -> int | None:
        """Last queried frame buffer size; None after any layout change."""
        return self._image_size

    @property
    def is_closed(self) -> bool:
        """True once close() succeeded or the session was dropped on exit."""
        return self._state is SessionState.CLOSED

    # -- internals -----------------------------------------------------------

    @property
    def _native(self) -> QHYCCDNativeProtocol:
        return self._sdk.native

    def _belongs_to_live_sdk(self) -> bool:
        return self._sdk.is_ready and self._sdk.generation == self._generation

    def _mark_closed(self) -> None:
        self._state = SessionState.CLOSED
        self._handle = None
        self._image_size = None

    def _require(self, operation: str, allowed: frozenset[SessionState]) -> int:
        """Check SDK readiness and session state; return the live handle.

        Raises:
            SDKNotReadyError: If the SDK was released since the session opened.
            SessionStateError: If the current state does not allow ``operation``.
        """
        if self._state is SessionState.CLOSED:
            raise SessionStateError(f"Cannot {operation}: session is closed")
        self._sdk.ensure_ready(self._generation)
        if self._state not in allowed:
            expected = ", ".join(sorted(s.value for s in allowed))
            raise SessionStateError(
                f"Cannot {operation} in state {self._state.value} "
                f"(expected one of: {expected})"
            )
        if self._handle is None:
            raise SessionStateError(
                f"Cannot {operation}: session has no native handle"
            )
        return self._handle

    def _require_mode(self, operation: str, mode: CameraStreamMode) -> None:
        if self._stream_mode is not mode:
            current = self._stream_mode.name if self._stream_mode else "unset"
            raise StreamModeMismatchError(
                f"Cannot {operation}: stream mode is {current}, needs {mode.name}"
            )

    def _check(
        self,
        code: int,
        error_cls: type[NativeCallError],
        success_codes: tuple[int, ...] = (QHYCCD_SUCCESS,),
        **fields: Any,
    ) -> int:
        return check_status(code, error_cls, success_codes, camera=self.name, **fields)

    def _invalidate_image_size(self) -> None:
        if self._image_size is not None:
            logger.debug("Image size invalidated by layout change", camera=self.name)
        self._image_size = None

    def _check_buffer_size(self, size: int | None) -> int:
        if self._image_size is None:
            raise BufferSizeError(
                "query_image_size() must be called after the last "
                "geometry or bit-depth change"
            )
        if size is None:
            return self._image_size
        if size != self._image_size:
            raise BufferSizeError(
                f"Buffer size {size} does not match queried image size "
                f"{self._image_size}"
            )
        return size

    def _frame(self, buffer: bytearray, result: FrameResult) -> ImageData:
        _, width, height, bpp, channels = result
        return ImageData(
            data=bytes(buffer),
            width=width,
            height=height,
            bits_per_pixel=bpp,
            channels=channels,
        )

    # -- open / close --------------------------------------------------------

    def open(self) -> None:
        """Acquire the native handle: CREATED -> OPENED.

        Raises:
            SessionStateError: If the session is not in CREATED state.
            SDKNotReadyError: Before SDK init() or after release().
            OpenError: If OpenQHYCCD returns a null handle.
        """
        if self._state is not SessionState.CREATED:
            raise SessionStateError(
                f"Cannot open: session is already {self._state.value}"
            )
        self._sdk.ensure_ready()
        self._generation = self._sdk.generation

        handle = self._native.open(self._identity.raw)
        if not handle:
            error = OpenError(
                message=f"Error opening camera {self.name}: null handle returned"
            )
            logger.error(str(error), error="OpenError", camera=self.name)
            raise error

        self._handle = handle
        self._state = SessionState.OPENED
        logger.info("Camera opened", camera=self.name)

    def close(self) -> None:
        """Release the native handle: any non-CLOSED state -> CLOSED.

        The native close is not idempotent, so a second close is rejected
        here and never forwarded. A CREATED session closes without a native
        call. A failed native close leaves the session state unchanged.

        Raises:
            SessionStateError: If the session is already closed.
            SDKNotReadyError: If the SDK was released since the session opened.
            CloseError: On a non-success native code.
        """
        if self._state is SessionState.CLOSED:
            raise SessionStateError("Cannot close: session is already closed")
        if self._state is SessionState.CREATED:
            self._mark_closed()
            return

        handle = self._require("close", _HANDLE_STATES)
        self._check(self._native.close(handle), CloseError)
        self._mark_closed()
        logger.info("Camera closed", camera=self.name)

    # -- identity and capability --------------------------------------------

    def read_firmware_version(self) -> str:
        """Read and decode the firmware build date.

        Raises:
            FirmwareVersionReadError: On a non-success native code.
        """
        handle = self._require("read firmware version", _HANDLE_STATES)
        rc, raw = self._native.get_firmware_version(handle)
        self._check(rc, FirmwareVersionReadError)
        version = decode_firmware_version(raw)
        logger.debug("Firmware version read", camera=self.name, version=version)
        return version

    def is_supported(self, feature: CameraFeature) -> bool:
        """Probe whether this device/firmware supports ``feature``.

        Not cached: the answer depends on model and firmware, so re-probe
        whenever it matters. Absence is a normal outcome and returns False;
        it never raises for an unsupported feature.
        """
        handle = self._require("query feature support", _HANDLE_STATES)
        rc = self._native.is_control_available(handle, int(feature))
        supported = not is_generic_failure(rc)
        logger.debug(
            "Feature probe", camera=self.name, feature=feature.name, supported=supported
        )
        return supported

    def bayer_pattern(self) -> BayerPattern | None:
        """Bayer layout of a colour sensor, None for monochrome sensors.

        Uses the CAM_COLOR probe, which returns the Bayer id instead of a
        plain success code on colour cameras.
        """
        handle = self._require("query bayer pattern", _HANDLE_STATES)
        rc = normalize_code(
            self._native.is_control_available(handle, int(CameraFeature.CAM_COLOR))
        )
        if is_generic_failure(rc):
            return None
        try:
            return BayerPattern(rc)
        except ValueError:
            return None

    # -- stream configuration ------------------------------------------------

    def set_stream_mode(self, mode: CameraStreamMode) -> None:
        """Choose the capture branch. Must precede initialize().

        Raises:
            StreamModeSetError: On a non-success native code.
        """
        handle = self._require(
            "set stream mode",
            frozenset({SessionState.OPENED, SessionState.STREAM_CONFIGURED}),
        )
        self._check(
            self._native.set_stream_mode(handle, int(mode)),
            StreamModeSetError,
            mode=mode.name,
        )
        self._stream_mode = mode
        self._state = SessionState.STREAM_CONFIGURED
        logger.debug("Stream mode set", camera=self.name, mode=mode.name)

    def set_read_mode(self, mode: int) -> None:
        """Select the sensor read mode (0 is the vendor default).

        Raises:
            ValueError: If ``mode`` is negative.
            ReadModeSetError: On a non-success native code.
        """
        if mode < 0:
            raise ValueError(f"read mode must be >= 0, got {mode}")
        handle = self._require(
            "set read mode",
            frozenset({SessionState.OPENED, SessionState.STREAM_CONFIGURED}),
        )
        self._check(self._native.set_read_mode(handle, mode), ReadModeSetError, mode=mode)
        self._read_mode = mode
        self._state = SessionState.STREAM_CONFIGURED
        logger.debug("Read mode set", camera=self.name, mode=mode)

    def initialize(self) -> None:
        """Run the device's post-open calibration: STREAM_CONFIGURED -> INITIALIZED.

        Allowed once per session. A failure leaves the session in
        STREAM_CONFIGURED and is not retried.

        Raises:
            SessionStateError: If already initialized or no stream mode set.
            CameraInitError: On a non-success native code.
        """
        if self._initialized:
            raise SessionStateError("Cannot initialize: session already initialized")
        handle = self._require("initialize", frozenset({SessionState.STREAM_CONFIGURED}))
        if self._stream_mode is None:
            raise SessionStateError("set_stream_mode() must be called before initialize()")

        start = time.monotonic()
        self._check(self._native.init_camera(handle), CameraInitError)
        self._initialized = True
        self._state = SessionState.INITIALIZED
        logger.info(
            "Camera initialized",
            camera=self.name,
            stream_mode=self._stream_mode.name,
            elapsed_ms=round((time.monotonic() - start) * 1000, 1),
        )

    # -- read-only queries ---------------------------------------------------

    def query_ccd_info(self) -> CCDChipInfo:
        """Sensor geometry and native bit depth.

        Raises:
            ChipInfoQueryError: On a non-success native code.
        """
        handle = self._require("query chip info", _READY_STATES)
        rc, info = self._native.get_chip_info(handle)
        self._check(rc, ChipInfoQueryError)
        return info

    def query_overscan_area(self) -> ImageArea:
        """Calibration reference (overscan) region of the sensor.

        Raises:
            OverscanAreaQueryError: On a non-success native code.
        """
        handle = self._require("query overscan area", _READY_STATES)
        rc, area = self._native.get_overscan_area(handle)
        self._check(rc, OverscanAreaQueryError)
        return area

    def query_effective_area(self) -> ImageArea:
        """Active imaging region; later ROIs are validated against it.

        Raises:
            EffectiveAreaQueryError: On a non-success native code.
        """
        handle = self._require("query effective area", _READY_STATES)
        rc, area = self._native.get_effective_area(handle)
        self._check(rc, EffectiveAreaQueryError)
        self._effective_area = area
        return area

    # -- parameters and geometry ---------------------------------------------

    def set_parameter(self, feature: CameraFeature, value: float) -> None:
        """Write a numeric control (gain, offset, exposure in µs, USB traffic...).

        Does not probe ``is_supported`` first: the SDK does not reliably
        reject unsupported controls, so gating is the caller's job. Use
        ``set_parameter_if_supported`` for the gated form.

        Raises:
            ParameterSetError: On a non-success native code.
        """
        handle = self._require("set parameter", _READY_STATES)
        self._check(
            self._native.set_param(handle, int(feature), float(value)),
            ParameterSetError,
            feature=feature.name,
            value=value,
        )
        if feature in _LAYOUT_FEATURES:
            self._invalidate_image_size()
        logger.debug("Parameter set", camera=self.name, feature=feature.name, value=value)

    def set_parameter_if_supported(self, feature: CameraFeature, value: float) -> bool:
        """Probe ``feature`` and write it only when the device supports it.

        Returns:
            True if the value was written, False if the feature is absent
            (nothing is sent to the native layer in that case).
        """
        if not self.is_supported(feature):
            logger.info(
                "Skipping unsupported parameter", camera=self.name, feature=feature.name
            )
            return False
        self.set_parameter(feature, value)
        return True

    def set_bit_mode(self, bits: int) -> None:
        """Set transfer bit depth. Invalidates the queried image size.

        Raises:
            ValueError: If ``bits`` is not positive.
            BitModeSetError: On a non-success native code.
        """
        if bits <= 0:
            raise ValueError(f"bits must be > 0, got {bits}")
        handle = self._require("set bit mode", frozenset({SessionState.INITIALIZED}))
        self._check(self._native.set_bits_mode(handle, bits), BitModeSetError, bits=bits)
        self._invalidate_image_size()

    def set_bin_mode(self, bin_x: int, bin_y: int) -> None:
        """Set pixel binning. Invalidates the queried image size.

        Raises:
            ValueError: If either factor is not positive.
            BinModeSetError: On a non-success native code.
        """
        if bin_x <= 0 or bin_y <= 0:
            raise ValueError(f"bin factors must be > 0, got {bin_x}x{bin_y}")
        handle = self._require("set bin mode", frozenset({SessionState.INITIALIZED}))
        self._check(
            self._native.set_bin_mode(handle, bin_x, bin_y),
            BinModeSetError,
            bin_x=bin_x,
            bin_y=bin_y,
        )
        self._invalidate_image_size()

    def set_roi(self, start_x: int, start_y: int, width: int, height: int) -> None:
        """Set the readout region. Invalidates the queried image size.

        When the effective area has been queried, the ROI must lie inside it.

        Raises:
            ValueError: On non-positive size, negative origin, or an ROI
                outside the queried effective area.
            ROISetError: On a non-success native code.
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"ROI size must be positive, got {width}x{height}")
        if start_x < 0 or start_y < 0:
            raise ValueError(f"ROI origin must be >= 0, got ({start_x}, {start_y})")

        roi = ImageArea(start_x, start_y, width, height)
        if self._effective_area is not None and not self._effective_area.contains(roi):
            raise ValueError(f"ROI {roi} lies outside effective area {self._effective_area}")

        handle = self._require("set ROI", frozenset({SessionState.INITIALIZED}))
        self._check(
            self._native.set_resolution(handle, start_x, start_y, width, height),
            ROISetError,
            roi=[start_x, start_y, width, height],
        )
        self._invalidate_image_size()

    def set_roi_area(self, area: ImageArea) -> None:
        """``set_roi`` taking an ImageArea, e.g. the queried effective area."""
        self.set_roi(area.start_x, area.start_y, area.width, area.height)

    def set_debayer(self, on: bool) -> None:
        """Turn in-library debayering on or off. Invalidates the image size.

        Raises:
            DebayerSetError: On a non-success native code.
        """
        handle = self._require("set debayer", frozenset({SessionState.INITIALIZED}))
        self._check(self._native.set_debayer(handle, on), DebayerSetError, on=on)
        self._invalidate_image_size()

    # -- capture -------------------------------------------------------------

    def query_image_size(self) -> int:
        """Frame buffer size for the current ROI/bin/bit-depth configuration.

        The result is remembered; frame reads must use exactly this size
        until the next layout change.

        Raises:
            ImageSizeQueryError: If the SDK returns the failure sentinel.
        """
        handle = self._require("query image size", _READY_STATES)
        size = normalize_code(self._native.get_mem_length(handle))
        if is_generic_failure(size):
            error = ImageSizeQueryError()
            logger.error(str(error), error="ImageSizeQueryError", camera=self.name)
            raise error
        self._image_size = size
        logger.debug("Image size queried", camera=self.name, size=size)
        return size

    def start_single_exposure(self) -> None:
        """Expose one frame; blocks until the device finishes: -> CAPTURING.

        Also legal from CAPTURING, to re-expose after a failed read.

        Raises:
            StreamModeMismatchError: If the stream mode is not SINGLE_FRAME.
            SingleExposureError: On a non-success native code.
        """
        handle = self._require("start single exposure", _READY_STATES)
        self._require_mode("start single exposure", CameraStreamMode.SINGLE_FRAME)

        start = time.monotonic()
        self._check(
            self._native.exp_single_frame(handle),
            SingleExposureError,
            (QHYCCD_SUCCESS, QHYCCD_READ_DIRECTLY),
        )
        self._state = SessionState.CAPTURING
        logger.debug(
            "Single exposure complete",
            camera=self.name,
            elapsed_ms=round((time.monotonic() - start) * 1000, 1),
        )

    def retrieve_single_frame(self, size: int | None = None) -> ImageData:
        """Read the exposed frame into a new buffer of exactly ``size`` bytes.

        Args:
            size: Buffer size; must equal the last ``query_image_size()``
                result. None uses that result.

        Returns:
            ImageData whose ``data`` is ``size`` bytes long. The session
            returns to INITIALIZED.

        Raises:
            BufferSizeError: If no size was queried since the last layout
                change, or ``size`` differs from it.
            SingleFrameReadError: On a non-success native code (the session
                stays CAPTURING).
        """
        handle = self._require("retrieve single frame", frozenset({SessionState.CAPTURING}))
        self._require_mode("retrieve single frame", CameraStreamMode.SINGLE_FRAME)
        size = self._check_buffer_size(size)

        buffer = bytearray(size)
        result = self._native.get_single_frame(handle, buffer)
        self._check(result[0], SingleFrameReadError)

        image = self._frame(buffer, result)
        self._state = SessionState.INITIALIZED
        logger.debug(
            "Single frame read",
            camera=self.name,
            width=image.width,
            height=image.height,
            bpp=image.bits_per_pixel,
            channels=image.channels,
            size=size,
        )
        return image

    def begin_live(self) -> None:
        """Start continuous streaming: INITIALIZED -> CAPTURING.

        Raises:
            StreamModeMismatchError: If the stream mode is not LIVE.
            LiveBeginError: On a non-success native code.
        """
        handle = self._require("begin live", frozenset({SessionState.INITIALIZED}))
        self._require_mode("begin live", CameraStreamMode.LIVE)
        self._check(self._native.begin_live(handle), LiveBeginError)
        self._state = SessionState.CAPTURING
        logger.info("Live mode started", camera=self.name)

    def poll_live_frame(self, size: int | None = None) -> ImageData | None:
        """Try once to read the next live frame.

        Returns:
            ImageData with ``size`` bytes of data, or None if the SDK reports
            the frame is not ready yet. Retrying is the caller's decision;
            see ``capture.wait_for_live_frame``.

        Raises:
            BufferSizeError: As for ``retrieve_single_frame``.
            LiveFrameReadError: On any non-success code other than not-ready.
        """
        handle = self._require("poll live frame", frozenset({SessionState.CAPTURING}))
        self._require_mode("poll live frame", CameraStreamMode.LIVE)
        size = self._check_buffer_size(size)

        buffer = bytearray(size)
        result = self._native.get_live_frame(handle, buffer)
        if is_generic_failure(result[0]):
            return None
        self._check(result[0], LiveFrameReadError)
        return self._frame(buffer, result)

    def end_live(self) -> None:
        """Stop streaming: CAPTURING -> INITIALIZED.

        Raises:
            StreamModeMismatchError: If the stream mode is not LIVE.
            LiveEndError: On a non-success native code.
        """
        handle = self._require("end live", frozenset({SessionState.CAPTURING}))
        self._require_mode("end live", CameraStreamMode.LIVE)
        self._check(self._native.stop_live(handle), LiveEndError)
        self._state = SessionState.INITIALIZED
        logger.info("Live mode stopped", camera=self.name)
