"""Tests for caller-side capture helpers."""

import pytest

from qhyccd_control.capture import RetryPolicy, capture_single_frame, wait_for_live_frame
from qhyccd_control.drivers.twin import DigitalTwinSDK
from qhyccd_control.errors import LiveFrameReadError, LiveFrameTimeoutError
from qhyccd_control.session import CameraSession, SessionState


class FakeClock:
    """Deterministic monotonic clock advanced by the fake sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class TestRetryPolicy:
    """Test policy validation."""

    def test_defaults(self) -> None:
        policy = RetryPolicy()

        assert policy.max_attempts >= 1
        assert policy.interval_s >= 0

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_attempts": 0}, {"timeout_s": 0}, {"interval_s": -0.1}],
    )
    def test_invalid_values(self, kwargs) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


class TestWaitForLiveFrame:
    """Test bounded polling of the live stream."""

    def test_returns_first_frame(
        self, live_session: CameraSession, twin: DigitalTwinSDK
    ) -> None:
        twin.live_not_ready_polls = 3
        live_session.begin_live()
        size = live_session.query_image_size()
        clock = FakeClock()

        image = wait_for_live_frame(
            live_session,
            size,
            RetryPolicy(max_attempts=10, timeout_s=1.0, interval_s=0.01),
            clock=clock,
            sleep=clock.sleep,
        )

        assert len(image.data) == size
        assert len(twin.calls_to("get_live_frame")) == 4
        assert clock.sleeps == [0.01, 0.01, 0.01]

    def test_attempts_exhausted(
        self, live_session: CameraSession, twin: DigitalTwinSDK
    ) -> None:
        """Verifies a stalled stream raises instead of spinning forever.

        Business context:
        An unattended run must notice a camera that stopped delivering
        frames (cable, power, firmware hang) rather than block for hours.
        """
        twin.live_not_ready_polls = 100
        live_session.begin_live()
        clock = FakeClock()

        with pytest.raises(LiveFrameTimeoutError) as exc_info:
            wait_for_live_frame(
                live_session,
                live_session.query_image_size(),
                RetryPolicy(max_attempts=5, timeout_s=None, interval_s=0.0),
                clock=clock,
                sleep=clock.sleep,
            )

        assert exc_info.value.attempts == 5
        assert clock.sleeps == []
        assert live_session.state is SessionState.CAPTURING

    def test_deadline_exhausted(
        self, live_session: CameraSession, twin: DigitalTwinSDK
    ) -> None:
        twin.live_not_ready_polls = 100
        live_session.begin_live()
        clock = FakeClock()

        with pytest.raises(LiveFrameTimeoutError) as exc_info:
            wait_for_live_frame(
                live_session,
                live_session.query_image_size(),
                RetryPolicy(max_attempts=1000, timeout_s=0.05, interval_s=0.02),
                clock=clock,
                sleep=clock.sleep,
            )

        assert exc_info.value.attempts == 4
        assert exc_info.value.elapsed_s >= 0.05

    def test_read_error_propagates(
        self, live_session: CameraSession, twin: DigitalTwinSDK
    ) -> None:
        live_session.begin_live()
        size = live_session.query_image_size()
        twin.fail("get_live_frame", code=0x9)

        with pytest.raises(LiveFrameReadError):
            wait_for_live_frame(live_session, size, RetryPolicy(interval_s=0.0))


class TestCaptureSingleFrame:
    def test_capture(self, single_frame_session: CameraSession, twin) -> None:
        image = capture_single_frame(single_frame_session)

        assert (image.width, image.height) == (64, 48)
        assert len(image.data) == single_frame_session.image_size
        assert single_frame_session.state is SessionState.INITIALIZED

    def test_capture_after_geometry_change(
        self, single_frame_session: CameraSession
    ) -> None:
        single_frame_session.set_bin_mode(2, 2)

        image = capture_single_frame(single_frame_session)

        assert (image.width, image.height) == (32, 24)
        assert len(image.data) == 32 * 24
