"""qhyccd-control: a safe Python interface to the QHYCCD camera SDK.

Wraps the vendor ``libqhyccd`` C library behind typed records, typed
exceptions and an explicit camera session state machine, with a digital
twin of the library for development without hardware.

Example:
    from qhyccd_control import CameraFeature, CameraStreamMode
    from qhyccd_control.drivers import get_factory

    with get_factory().create_context() as sdk:
        sdk.scan()
        with sdk.open_camera(sdk.get_identity(0)) as camera:
            camera.set_stream_mode(CameraStreamMode.SINGLE_FRAME)
            camera.initialize()
            camera.set_parameter(CameraFeature.CONTROL_EXPOSURE, 2000)
            ...
"""

from qhyccd_control.capture import RetryPolicy, capture_single_frame, wait_for_live_frame
from qhyccd_control.errors import (
    BufferSizeError,
    LiveFrameTimeoutError,
    NativeCallError,
    QHYCCDError,
    SDKNotReadyError,
    SessionStateError,
    StreamModeMismatchError,
)
from qhyccd_control.features import (
    BayerPattern,
    CameraFeature,
    CameraStreamMode,
    CameraTypeCode,
    feature_from_code,
)
from qhyccd_control.sdk import SDKContext
from qhyccd_control.session import CameraSession, SessionState, decode_firmware_version
from qhyccd_control.types import (
    CCDChipInfo,
    CameraIdentity,
    ImageArea,
    ImageData,
    SDKVersion,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Lifecycle
    "SDKContext",
    "CameraSession",
    "SessionState",
    # Capture
    "RetryPolicy",
    "capture_single_frame",
    "wait_for_live_frame",
    # Records
    "CCDChipInfo",
    "CameraIdentity",
    "ImageArea",
    "ImageData",
    "SDKVersion",
    "decode_firmware_version",
    # Features
    "BayerPattern",
    "CameraFeature",
    "CameraStreamMode",
    "CameraTypeCode",
    "feature_from_code",
    # Errors
    "BufferSizeError",
    "LiveFrameTimeoutError",
    "NativeCallError",
    "QHYCCDError",
    "SDKNotReadyError",
    "SessionStateError",
    "StreamModeMismatchError",
]
