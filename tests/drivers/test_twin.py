"""Tests for the digital twin native layer.

The twin stands in for libqhyccd in every other test module, so these
tests pin down the vendor behaviours it reproduces: status codes, the
scan-before-init failure, Bayer probes and frame geometry.
"""

import numpy as np
import pytest

from qhyccd_control.drivers.native import FIRMWARE_BUFFER_LENGTH, QHYCCDNativeProtocol
from qhyccd_control.drivers.twin import DEFAULT_CAMERAS, QHY178M, DigitalTwinSDK
from qhyccd_control.errors import QHYCCD_ERROR, QHYCCD_READ_DIRECTLY, QHYCCD_SUCCESS
from qhyccd_control.features import BayerPattern, CameraFeature, CameraStreamMode
from qhyccd_control.types import CAMERA_ID_LENGTH, ImageArea
from tests.helpers import SMALL_COLOR, SMALL_MONO, assert_implements_protocol


def _open(twin: DigitalTwinSDK, index: int = 0) -> int:
    twin.init_resource()
    _, raw = twin.get_id(index)
    handle = twin.open(raw)
    assert handle is not None
    return handle


def _ready(twin: DigitalTwinSDK, mode: CameraStreamMode) -> int:
    handle = _open(twin)
    assert twin.set_stream_mode(handle, mode) == QHYCCD_SUCCESS
    assert twin.init_camera(handle) == QHYCCD_SUCCESS
    return handle


class TestProtocol:
    def test_implements_native_protocol(self) -> None:
        assert_implements_protocol(DigitalTwinSDK(), QHYCCDNativeProtocol)

    def test_default_camera(self) -> None:
        twin = DigitalTwinSDK()

        assert twin.cameras == [QHY178M]
        assert set(DEFAULT_CAMERAS) == {"QHY178M", "QHY178C"}


class TestLibraryLifecycle:
    """Test init, scan and identity enumeration."""

    def test_scan_before_init_fails(self) -> None:
        """Verifies scan returns the sentinel before InitQHYCCDResource.

        Business context:
        The vendor library answers 0xFFFFFFFF rather than 0 when scanned
        uninitialized; the SDK context relies on seeing that.
        """
        twin = DigitalTwinSDK(cameras=[SMALL_MONO, SMALL_COLOR])

        assert twin.scan() == QHYCCD_ERROR
        twin.init_resource()
        assert twin.scan() == 2

    def test_get_id_is_padded(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])

        rc, raw = twin.get_id(0)

        assert rc == QHYCCD_SUCCESS
        assert len(raw) == CAMERA_ID_LENGTH
        assert raw.rstrip(b"\0") == SMALL_MONO.name.encode("ascii")

    def test_get_id_out_of_range(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])

        assert twin.get_id(1)[0] == QHYCCD_ERROR

    def test_open_unknown_id_returns_none(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        twin.init_resource()

        assert twin.open(b"nope".ljust(CAMERA_ID_LENGTH, b"\0")) is None

    def test_release_drops_devices(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _open(twin)

        twin.release_resource()

        assert twin.close(handle) == QHYCCD_ERROR

    def test_handles_are_distinct(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        first = _open(twin)
        second = twin.open(SMALL_MONO.identity.raw)

        assert first != second


class TestDeviceQueries:
    def test_firmware_padded(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _open(twin)

        rc, raw = twin.get_firmware_version(handle)

        assert rc == QHYCCD_SUCCESS
        assert len(raw) == FIRMWARE_BUFFER_LENGTH
        assert raw[:2] == bytes([0x22, 0x05])

    def test_control_available(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _open(twin)

        assert twin.is_control_available(handle, CameraFeature.CONTROL_GAIN) == 0
        assert twin.is_control_available(handle, CameraFeature.CAM_COLOR) == QHYCCD_ERROR

    def test_color_probe_returns_bayer_id(self) -> None:
        """Verifies CAM_COLOR answers with the Bayer layout on colour sensors."""
        twin = DigitalTwinSDK(cameras=[SMALL_COLOR])
        handle = _open(twin)

        rc = twin.is_control_available(handle, CameraFeature.CAM_COLOR)

        assert rc == BayerPattern.GB

    def test_geometry(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _open(twin)

        assert twin.get_chip_info(handle) == (QHYCCD_SUCCESS, SMALL_MONO.chip_info)
        assert twin.get_overscan_area(handle) == (
            QHYCCD_SUCCESS,
            ImageArea(60, 0, 4, 48),
        )
        assert twin.get_effective_area(handle)[1] == SMALL_MONO.effective_area

    def test_unknown_handle(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        twin.init_resource()

        assert twin.get_chip_info(0xDEAD)[0] == QHYCCD_ERROR
        assert twin.set_param(0xDEAD, CameraFeature.CONTROL_GAIN, 1.0) == QHYCCD_ERROR


class TestConfiguration:
    """Test geometry and parameter changes feed the frame size."""

    def test_frame_size_tracks_geometry(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _ready(twin, CameraStreamMode.SINGLE_FRAME)

        assert twin.get_mem_length(handle) == 64 * 48

        twin.set_resolution(handle, 0, 0, 60, 48)
        twin.set_bin_mode(handle, 2, 2)
        twin.set_bits_mode(handle, 16)

        assert twin.get_mem_length(handle) == 30 * 24 * 2

    def test_transferbit_param_sets_bits(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _open(twin)

        twin.set_param(handle, CameraFeature.CONTROL_TRANSFERBIT, 16.0)

        assert twin.device(handle).bits == 16

    def test_unsupported_param_accepted(self) -> None:
        """Verifies set_param does not consult the feature table, like the SDK."""
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _open(twin)

        rc = twin.set_param(handle, CameraFeature.CONTROL_COOLER, -10.0)

        assert rc == QHYCCD_SUCCESS
        assert twin.device(handle).params[CameraFeature.CONTROL_COOLER] == -10.0

    @pytest.mark.parametrize(
        "roi",
        [(0, 0, 0, 48), (0, 0, 65, 48), (10, 10, 60, 40)],
        ids=["zero-width", "too-wide", "past-edge"],
    )
    def test_invalid_resolution(self, roi: tuple[int, int, int, int]) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _open(twin)

        assert twin.set_resolution(handle, *roi) == QHYCCD_ERROR

    def test_binning_cannot_empty_the_frame(self) -> None:
        """Verifies a bin factor larger than the ROI is refused with a status.

        Business context:
        A 3x3 ROI at bin 4x4 would yield a 0x0 frame; the twin must answer
        with the failure code like the library instead of crashing while
        drawing the synthetic frame.
        """
        twin = DigitalTwinSDK(cameras=[SMALL_COLOR])
        handle = _ready(twin, CameraStreamMode.SINGLE_FRAME)
        twin.set_debayer(handle, True)

        assert twin.set_resolution(handle, 0, 0, 3, 3) == QHYCCD_SUCCESS
        assert twin.set_bin_mode(handle, 4, 4) == QHYCCD_ERROR

        twin.set_resolution(handle, 0, 0, 64, 48)
        assert twin.set_bin_mode(handle, 4, 4) == QHYCCD_SUCCESS
        assert twin.set_resolution(handle, 0, 0, 3, 3) == QHYCCD_ERROR
        assert twin.get_mem_length(handle) == 16 * 12 * 3

    def test_debayer_needs_colour_sensor(self) -> None:
        mono = DigitalTwinSDK(cameras=[SMALL_MONO])
        color = DigitalTwinSDK(cameras=[SMALL_COLOR])
        mono_handle = _open(mono)
        color_handle = _open(color)

        assert mono.set_debayer(mono_handle, True) == QHYCCD_ERROR
        assert color.set_debayer(color_handle, True) == QHYCCD_SUCCESS
        assert color.get_mem_length(color_handle) == 64 * 48 * 3


class TestCapture:
    def test_single_frame(self) -> None:
        """Verifies expose returns READ_DIRECTLY and the frame fills the buffer.

        Arrangement:
        1. Initialized camera in single-frame mode.

        Action:
        Expose then read into a buffer of GetQHYCCDMemLength bytes.

        Assertion Strategy:
        Frame metadata matches the sensor and the crosshair is at full scale.
        """
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _ready(twin, CameraStreamMode.SINGLE_FRAME)
        buffer = bytearray(twin.get_mem_length(handle))

        assert twin.exp_single_frame(handle) == QHYCCD_READ_DIRECTLY
        rc, w, h, bpp, channels = twin.get_single_frame(handle, buffer)

        assert (rc, w, h, bpp, channels) == (QHYCCD_SUCCESS, 64, 48, 8, 1)
        pixels = np.frombuffer(bytes(buffer), dtype=np.uint8).reshape(48, 64)
        assert pixels[24, 5] == 255
        assert pixels[5, 32] == 255

    def test_read_without_exposure_fails(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _ready(twin, CameraStreamMode.SINGLE_FRAME)

        assert twin.get_single_frame(handle, bytearray(64 * 48))[0] == QHYCCD_ERROR

    def test_short_buffer_rejected(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _ready(twin, CameraStreamMode.SINGLE_FRAME)
        twin.exp_single_frame(handle)

        assert twin.get_single_frame(handle, bytearray(10))[0] == QHYCCD_ERROR

    def test_expose_in_live_mode_fails(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _ready(twin, CameraStreamMode.LIVE)

        assert twin.exp_single_frame(handle) == QHYCCD_ERROR

    def test_live_not_ready_polls(self) -> None:
        """Verifies the twin answers "not ready" N times before each frame."""
        twin = DigitalTwinSDK(cameras=[SMALL_MONO], live_not_ready_polls=2)
        handle = _ready(twin, CameraStreamMode.LIVE)
        buffer = bytearray(twin.get_mem_length(handle))
        assert twin.begin_live(handle) == QHYCCD_SUCCESS

        codes = [twin.get_live_frame(handle, buffer)[0] for _ in range(6)]

        assert codes == [QHYCCD_ERROR, QHYCCD_ERROR, QHYCCD_SUCCESS] * 2

    def test_stop_live_requires_running_stream(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _ready(twin, CameraStreamMode.LIVE)

        assert twin.stop_live(handle) == QHYCCD_ERROR
        twin.begin_live(handle)
        assert twin.stop_live(handle) == QHYCCD_SUCCESS

    def test_sixteen_bit_colour_frame(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_COLOR])
        handle = _ready(twin, CameraStreamMode.SINGLE_FRAME)
        twin.set_bits_mode(handle, 16)
        twin.set_debayer(handle, True)
        buffer = bytearray(twin.get_mem_length(handle))
        twin.exp_single_frame(handle)

        rc, w, h, bpp, channels = twin.get_single_frame(handle, buffer)

        assert (rc, w, h, bpp, channels) == (QHYCCD_SUCCESS, 64, 48, 16, 3)
        assert len(buffer) == 64 * 48 * 2 * 3


class TestFailureInjection:
    def test_fail_once(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        twin.fail("init_resource", code=0x1234)

        assert twin.init_resource() == 0x1234
        assert twin.init_resource() == QHYCCD_SUCCESS

    def test_fail_times(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        twin.init_resource()
        twin.fail("scan", times=2)

        assert [twin.scan() for _ in range(3)] == [QHYCCD_ERROR, QHYCCD_ERROR, 1]

    def test_fail_forever_and_clear(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        twin.init_resource()
        twin.fail("scan", times=None)

        assert [twin.scan() for _ in range(5)] == [QHYCCD_ERROR] * 5
        twin.clear_failures()
        assert twin.scan() == 1

    def test_injected_open_failure_gives_null_handle(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        twin.init_resource()
        twin.fail("open")

        assert twin.open(SMALL_MONO.identity.raw) is None

    @pytest.mark.parametrize("method", ["no_such_call", "_enter", "calls"])
    def test_fail_rejects_non_native_names(self, method: str) -> None:
        twin = DigitalTwinSDK()

        with pytest.raises(AttributeError, match="no native method"):
            twin.fail(method)


class TestCallLog:
    def test_calls_recorded_in_order(self) -> None:
        twin = DigitalTwinSDK(cameras=[SMALL_MONO])
        handle = _open(twin)
        twin.set_param(handle, CameraFeature.CONTROL_GAIN, 10.0)

        assert [name for name, _ in twin.calls] == [
            "init_resource",
            "get_id",
            "open",
            "set_param",
        ]
        assert twin.calls_to("set_param") == [
            (handle, CameraFeature.CONTROL_GAIN, 10.0)
        ]
