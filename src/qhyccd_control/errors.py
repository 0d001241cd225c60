"""Error mapper: native status codes to typed exceptions.

The vendor convention is ``0`` for success, the all-ones 32-bit value for a
generic failure whose meaning depends on the call ("not supported", "no
device", "buffer error", ...), and any other value as a library-specific
code passed through verbatim. Each failing operation category gets its own
exception class carrying the raw code.

Hierarchy:
    QHYCCDError (RuntimeError)
    ├── NativeCallError          device/library faults, carry ``code``
    │   ├── InitializationError, ScanError, IdentityLookupError, ...
    │   └── ImageSizeQueryError  (no code, boolean sentinel only)
    ├── LiveFrameTimeoutError    caller retry policy exhausted
    ├── SDKNotReadyError         programming error: SDK not initialized
    ├── SessionStateError        programming error: wrong session state
    │   └── StreamModeMismatchError
    └── BufferSizeError          (also a ValueError)

Example:
    >>> check_status(native.InitQHYCCD(handle), CameraInitError, camera=name)
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, ClassVar

from qhyccd_control.observability import get_logger

logger = get_logger(__name__)

__all__ = [
    "QHYCCD_ERROR",
    "QHYCCD_READ_DIRECTLY",
    "QHYCCD_SUCCESS",
    "BinModeSetError",
    "BitModeSetError",
    "BufferSizeError",
    "CameraInitError",
    "ChipInfoQueryError",
    "CloseError",
    "DebayerSetError",
    "EffectiveAreaQueryError",
    "FirmwareVersionReadError",
    "IdentityLookupError",
    "ImageSizeQueryError",
    "InitCameraError",
    "InitializationError",
    "LiveBeginError",
    "LiveEndError",
    "LiveFrameReadError",
    "LiveFrameTimeoutError",
    "NativeCallError",
    "OpenError",
    "OverscanAreaQueryError",
    "ParameterSetError",
    "QHYCCDError",
    "ROISetError",
    "ReadModeSetError",
    "ReleaseError",
    "SDKNotReadyError",
    "SDKVersionError",
    "ScanError",
    "SessionStateError",
    "SetParameterError",
    "SingleExposureError",
    "SingleFrameReadError",
    "StreamModeMismatchError",
    "StreamModeSetError",
    "check_status",
    "is_generic_failure",
    "normalize_code",
    "translate_status",
]

# =============================================================================
# Status Codes
# =============================================================================

QHYCCD_SUCCESS = 0
QHYCCD_ERROR = 0xFFFFFFFF
# ExpQHYCCDSingleFrame: exposure finished, frame can be read immediately
QHYCCD_READ_DIRECTLY = 0x2001

_UINT32_MASK = 0xFFFFFFFF


def normalize_code(code: int) -> int:
    """Fold a status code into the unsigned 32-bit range.

    Bindings that declare a signed return type hand back -1 for the
    failure sentinel; masking makes both spellings compare equal.
    """
    return int(code) & _UINT32_MASK


def is_generic_failure(code: int) -> bool:
    """True when ``code`` is the all-ones generic failure sentinel."""
    return normalize_code(code) == QHYCCD_ERROR


# =============================================================================
# Exceptions
# =============================================================================


class QHYCCDError(RuntimeError):
    """Base class for every error raised by qhyccd-control."""


class NativeCallError(QHYCCDError):
    """A native call reported a non-success status code.

    Attributes:
        code: Raw unsigned status code, or None where the call only has a
            failure sentinel.
    """

    operation: ClassVar[str] = "calling QHYCCD SDK"

    def __init__(self, code: int | None = None, message: str | None = None) -> None:
        self.code = normalize_code(code) if code is not None else None
        if message is None:
            if self.code is None:
                message = f"Error {self.operation}"
            else:
                message = f"Error {self.operation}, error code {self.code:#x}"
        super().__init__(message)

    @property
    def is_generic_failure(self) -> bool:
        """True if the SDK returned the all-ones sentinel."""
        return self.code == QHYCCD_ERROR


class InitializationError(NativeCallError):
    operation = "initializing QHYCCD SDK"


class ReleaseError(NativeCallError):
    operation = "releasing QHYCCD SDK"


class SDKVersionError(NativeCallError):
    operation = "getting QHYCCD SDK version"


class ScanError(NativeCallError):
    operation = "scanning QHYCCD cameras"


class IdentityLookupError(NativeCallError):
    operation = "getting camera id"


class OpenError(NativeCallError):
    operation = "opening camera"


class FirmwareVersionReadError(NativeCallError):
    operation = "getting firmware version"


class ReadModeSetError(NativeCallError):
    operation = "setting camera read mode"


class StreamModeSetError(NativeCallError):
    operation = "setting camera stream mode"


class CameraInitError(NativeCallError):
    operation = "initializing camera"


class ChipInfoQueryError(NativeCallError):
    operation = "getting camera CCD info"


class OverscanAreaQueryError(NativeCallError):
    operation = "getting camera overscan area"


class EffectiveAreaQueryError(NativeCallError):
    operation = "getting camera effective area"


class BitModeSetError(NativeCallError):
    operation = "setting camera bit mode"


class DebayerSetError(NativeCallError):
    operation = "setting camera debayer on/off"


class BinModeSetError(NativeCallError):
    operation = "setting camera bin mode"


class ROISetError(NativeCallError):
    operation = "setting camera sub frame"


class ParameterSetError(NativeCallError):
    operation = "setting camera parameter"


class SingleExposureError(NativeCallError):
    operation = "starting single frame exposure"


class SingleFrameReadError(NativeCallError):
    operation = "getting camera single frame"


class LiveBeginError(NativeCallError):
    operation = "starting camera live mode"


class LiveEndError(NativeCallError):
    operation = "stopping camera live mode"


class ImageSizeQueryError(NativeCallError):
    operation = "getting image size"


class LiveFrameReadError(NativeCallError):
    operation = "getting camera live frame"


class CloseError(NativeCallError):
    operation = "closing camera"


# Names used by the C API documentation
InitCameraError = CameraInitError
SetParameterError = ParameterSetError


class LiveFrameTimeoutError(QHYCCDError):
    """The live-frame retry policy ran out of attempts or time."""

    def __init__(self, attempts: int, elapsed_s: float) -> None:
        self.attempts = attempts
        self.elapsed_s = elapsed_s
        super().__init__(
            f"Live frame not ready after {attempts} attempt(s) "
            f"in {elapsed_s:.3f}s"
        )


class SDKNotReadyError(QHYCCDError):
    """SDK used before init(), after release(), or through a stale session."""


class SessionStateError(QHYCCDError):
    """Operation is not legal in the session's current state."""


class StreamModeMismatchError(SessionStateError):
    """Capture branch does not match the session's configured stream mode."""


class BufferSizeError(QHYCCDError, ValueError):
    """Frame buffer size disagrees with the last queried image size."""


# =============================================================================
# Translation
# =============================================================================


def translate_status(
    code: int,
    error_cls: type[NativeCallError],
    success_codes: Iterable[int] = (QHYCCD_SUCCESS,),
) -> NativeCallError | None:
    """Map a status code to its typed error, or None on success.

    Pure: no logging, no raising.

    Args:
        code: Raw status code from the native call.
        error_cls: Error kind for the operation category.
        success_codes: Codes that count as success for this call.

    Returns:
        None for success codes, otherwise an ``error_cls`` instance.

    Example:
        >>> translate_status(0, ScanError) is None
        True
        >>> translate_status(0xFFFFFFFF, ScanError).is_generic_failure
        True
    """
    code = normalize_code(code)
    if code in success_codes:
        return None
    return error_cls(code)


def check_status(
    code: int,
    error_cls: type[NativeCallError],
    success_codes: Iterable[int] = (QHYCCD_SUCCESS,),
    **log_fields: Any,
) -> int:
    """Raise the typed error for a non-success code, logging it first.

    Args:
        code: Raw status code from the native call.
        error_cls: Error kind for the operation category.
        success_codes: Codes that count as success for this call.
        **log_fields: Extra structured fields for the error log entry.

    Returns:
        The normalized code (useful when several success codes exist).

    Raises:
        NativeCallError: ``error_cls`` carrying the raw code.
    """
    error = translate_status(code, error_cls, success_codes)
    if error is not None:
        logger.error(
            str(error),
            error=error_cls.__name__,
            code=error.code,
            **log_fields,
        )
        raise error
    return normalize_code(code)
