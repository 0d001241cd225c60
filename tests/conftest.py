"""Pytest configuration and fixtures for qhyccd-control tests.

Every fixture runs against the digital twin, so the suite needs neither the
vendor library nor a camera. The default twin camera here is a small
64x48 sensor to keep synthetic frames cheap; tests that need the real
QHY178M geometry import it from ``qhyccd_control.drivers.twin``.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Iterator

import pytest

from qhyccd_control.drivers import config as sdk_config
from qhyccd_control.drivers.twin import DigitalTwinSDK
from qhyccd_control.features import CameraStreamMode
from qhyccd_control.observability import configure_logging, reset_logging
from qhyccd_control.sdk import SDKContext
from qhyccd_control.session import CameraSession
from tests.helpers import SMALL_MONO


@pytest.fixture(autouse=True)
def _reset_global_factory() -> Iterator[None]:
    """Drop the global SDK factory so configuration never leaks between tests."""
    yield
    sdk_config._factory = None


@pytest.fixture
def log_stream() -> Iterator[io.StringIO]:
    """Route qhyccd_control logs at DEBUG into a StringIO for assertions.

    Business context:
    The package logger does not propagate to the root logger, so caplog
    never sees its records; tests read the formatted stream instead.

    Yields:
        StringIO receiving one formatted line per record.
    """
    buffer = io.StringIO()
    configure_logging(level=logging.DEBUG, stream=buffer, force=True)
    yield buffer
    reset_logging()


@pytest.fixture
def twin() -> DigitalTwinSDK:
    """Digital twin with one small monochrome camera attached."""
    return DigitalTwinSDK(cameras=[SMALL_MONO])


@pytest.fixture
def sdk(twin: DigitalTwinSDK) -> Iterator[SDKContext]:
    """Initialized SDK context over the twin; released afterwards if still ready."""
    context = SDKContext(twin)
    context.init()
    yield context
    if context.is_ready:
        context.release()


@pytest.fixture
def session(sdk: SDKContext) -> CameraSession:
    """OPENED session on the twin's first camera."""
    sdk.scan()
    return sdk.open_camera(sdk.get_identity(0))


@pytest.fixture
def single_frame_session(session: CameraSession) -> CameraSession:
    """INITIALIZED session in single-frame stream mode."""
    session.set_stream_mode(CameraStreamMode.SINGLE_FRAME)
    session.set_read_mode(0)
    session.initialize()
    return session


@pytest.fixture
def live_session(session: CameraSession) -> CameraSession:
    """INITIALIZED session in live stream mode."""
    session.set_stream_mode(CameraStreamMode.LIVE)
    session.set_read_mode(0)
    session.initialize()
    return session
