"""Capture helpers built on CameraSession.

The session exposes one native call per method; live-frame polling in
particular returns ``None`` for "not ready yet" and leaves retrying to the
caller. This module holds the caller-side policies:

- ``RetryPolicy``: bounded attempts plus an overall deadline
- ``wait_for_live_frame``: poll until a frame arrives or the policy is spent
- ``capture_single_frame``: expose, size the buffer, read
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from qhyccd_control.errors import LiveFrameTimeoutError
from qhyccd_control.observability import get_logger
from qhyccd_control.session import CameraSession
from qhyccd_control.types import ImageData

logger = get_logger(__name__)

__all__ = ["RetryPolicy", "capture_single_frame", "wait_for_live_frame"]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounds for polling a live stream.

    Attributes:
        max_attempts: Maximum number of polls, at least 1.
        timeout_s: Overall deadline in seconds; None means attempts only.
        interval_s: Sleep between polls that returned "not ready".

    Example:
        >>> policy = RetryPolicy(max_attempts=200, timeout_s=2.0, interval_s=0.01)
    """

    max_attempts: int = 100
    timeout_s: float | None = 5.0
    interval_s: float = 0.01

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {self.timeout_s}")
        if self.interval_s < 0:
            raise ValueError(f"interval_s must be >= 0, got {self.interval_s}")


def wait_for_live_frame(
    session: CameraSession,
    size: int | None = None,
    policy: RetryPolicy | None = None,
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> ImageData:
    """Poll the live stream until a frame is delivered.

    Business context: the vendor sample loops on GetQHYCCDLiveFrame
    forever. A bounded policy turns a stalled camera into an exception the
    caller can handle instead of a hung process.

    Args:
        session: Session in live CAPTURING state.
        size: Buffer size from ``query_image_size()``; None uses the cached one.
        policy: Attempt and time bounds; defaults to ``RetryPolicy()``.
        clock: Monotonic clock, injectable for tests.
        sleep: Sleep function, injectable for tests.

    Returns:
        The first frame the SDK delivers.

    Raises:
        LiveFrameTimeoutError: If attempts or time run out first.
        LiveFrameReadError: On any read failure other than "not ready".
    """
    policy = policy or RetryPolicy()
    start = clock()
    attempts = 0

    while True:
        attempts += 1
        frame = session.poll_live_frame(size)
        if frame is not None:
            logger.debug(
                "Live frame received",
                camera=session.name,
                attempts=attempts,
                elapsed_ms=round((clock() - start) * 1000, 1),
            )
            return frame

        elapsed = clock() - start
        timed_out = policy.timeout_s is not None and elapsed >= policy.timeout_s
        if attempts >= policy.max_attempts or timed_out:
            logger.warning(
                "Live frame wait exhausted",
                camera=session.name,
                attempts=attempts,
                elapsed_s=round(elapsed, 3),
            )
            raise LiveFrameTimeoutError(attempts, elapsed)

        if policy.interval_s:
            sleep(policy.interval_s)


def capture_single_frame(session: CameraSession) -> ImageData:
    """Run one single-frame exposure end to end.

    Calls ``start_single_exposure``, ``query_image_size`` and
    ``retrieve_single_frame`` in order, so the buffer always matches the
    current configuration.

    Args:
        session: INITIALIZED session in SINGLE_FRAME stream mode, with
            exposure and geometry already configured.

    Returns:
        The captured frame.
    """
    session.start_single_exposure()
    size = session.query_image_size()
    return session.retrieve_single_frame(size)
