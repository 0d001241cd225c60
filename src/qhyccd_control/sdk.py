"""SDK lifecycle manager and device identity resolver.

``SDKContext`` replaces the vendor library's ambient process-wide state with
an explicit object. Callers create one per native library, pass it to every
session, and drive it through ``init -> scan* -> release``. Using it before
``init()`` or after ``release()`` raises ``SDKNotReadyError`` instead of
reaching undefined native behaviour.

Example:
    from qhyccd_control import SDKContext
    from qhyccd_control.drivers.twin import DigitalTwinSDK

    with SDKContext(DigitalTwinSDK()) as sdk:      # init() ... release()
        count = sdk.scan()
        identity = sdk.get_identity(0)
        with sdk.open_camera(identity) as camera:
            print(camera.read_firmware_version())
"""

from __future__ import annotations

import threading
from types import TracebackType
from typing import TYPE_CHECKING

from qhyccd_control.errors import (
    IdentityLookupError,
    InitializationError,
    QHYCCDError,
    ReleaseError,
    ScanError,
    SDKNotReadyError,
    SDKVersionError,
    check_status,
    is_generic_failure,
    normalize_code,
)
from qhyccd_control.observability import get_logger
from qhyccd_control.types import CameraIdentity, SDKVersion

if TYPE_CHECKING:
    from qhyccd_control.drivers.native import QHYCCDNativeProtocol
    from qhyccd_control.session import CameraSession

logger = get_logger(__name__)

__all__ = ["SDKContext"]


class SDKContext:
    """Process-wide SDK state as an injectable object.

    Thread Safety:
        ``init``, ``scan``, ``get_identity`` and ``release`` are serialized
        by an internal lock so they never interleave. Sessions are not
        covered by this lock; see ``CameraSession``.

    Attributes:
        native: The native boundary this context drives.
    """

    def __init__(self, native: QHYCCDNativeProtocol) -> None:
        """Create an uninitialized context.

        Args:
            native: ctypes binding or digital twin implementing
                QHYCCDNativeProtocol.
        """
        self.native = native
        self._lock = threading.RLock()
        self._ready = False
        self._generation = 0
        self._device_count: int | None = None

    def __repr__(self) -> str:
        state = "ready" if self._ready else "not ready"
        return f"<SDKContext {state} generation={self._generation}>"

    def __enter__(self) -> SDKContext:
        self.init()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._ready:
            self.release()

    # -- state ---------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        """True between a successful init() and release()."""
        return self._ready

    @property
    def generation(self) -> int:
        """Counter identifying the current init/release cycle."""
        return self._generation

    @property
    def device_count(self) -> int | None:
        """Result of the most recent scan(), None if not scanned this cycle."""
        return self._device_count

    def ensure_ready(self, generation: int | None = None) -> None:
        """Reject use before init(), after release(), or from a stale cycle.

        Args:
            generation: Cycle the caller was created in; sessions pass theirs
                so handles from a released cycle are never reused.

        Raises:
            SDKNotReadyError: If the context cannot serve the caller.
        """
        if not self._ready:
            raise SDKNotReadyError(
                "QHYCCD SDK is not initialized; call init() first"
                if self._generation == 0
                else "QHYCCD SDK has been released"
            )
        if generation is not None and generation != self._generation:
            raise SDKNotReadyError(
                "Session belongs to a released SDK cycle and cannot be reused"
            )

    # -- lifecycle -----------------------------------------------------------

    def get_sdk_version(self) -> SDKVersion:
        """Read the native library build version.

        Legal at any time, including before init().

        Raises:
            SDKVersionError: On a non-success code.
        """
        rc, version = self.native.get_sdk_version()
        check_status(rc, SDKVersionError)
        logger.debug("QHYCCD SDK version", version=str(version))
        return version

    def init(self) -> None:
        """Acquire native resources. Must precede every device operation.

        Raises:
            QHYCCDError: If the context is already initialized.
            InitializationError: If the native resource cannot be acquired.
        """
        with self._lock:
            if self._ready:
                raise QHYCCDError("QHYCCD SDK is already initialized")

            check_status(self.native.init_resource(), InitializationError)
            self._ready = True
            self._generation += 1
            self._device_count = None
            logger.info("QHYCCD SDK initialized", generation=self._generation)

    def scan(self) -> int:
        """Rescan the bus and return the number of attached cameras.

        Any count, including 0, is a success; only the generic failure
        sentinel is an error.

        Raises:
            SDKNotReadyError: Before init() or after release().
            ScanError: If the native scan reports the failure sentinel.
        """
        with self._lock:
            self.ensure_ready()

            count = normalize_code(self.native.scan())
            if is_generic_failure(count):
                self._device_count = None
                check_status(count, ScanError)

            self._device_count = count
            logger.info("Scanned QHYCCD cameras", count=count)
            return count

    def get_identity(self, index: int) -> CameraIdentity:
        """Fetch the identity of the camera at ``index``.

        Args:
            index: Zero-based, less than the most recent scan() result.

        Raises:
            SDKNotReadyError: Before init(), after release(), or if no scan()
                has run in this cycle.
            IndexError: If ``index`` is outside the scanned range.
            IdentityLookupError: On a non-success native code.
        """
        with self._lock:
            self.ensure_ready()
            if self._device_count is None:
                raise SDKNotReadyError("scan() must run before get_identity()")
            if not 0 <= index < self._device_count:
                raise IndexError(
                    f"Camera index {index} out of range "
                    f"(scan found {self._device_count})"
                )

            rc, raw = self.native.get_id(index)
            check_status(rc, IdentityLookupError, index=index)
            identity = CameraIdentity(raw)
            logger.debug("Resolved camera identity", index=index, camera=identity.name)
            return identity

    def open_camera(self, identity: CameraIdentity) -> CameraSession:
        """Create a session for ``identity`` and open it.

        Raises:
            SDKNotReadyError: Before init() or after release().
            OpenError: If the native open returns a null handle.
        """
        from qhyccd_control.session import CameraSession

        session = CameraSession(self, identity)
        session.open()
        return session

    def release(self) -> None:
        """Tear down native resources.

        Every session opened in this cycle becomes unusable afterwards. A
        failed release leaves the context ready so the caller may retry.

        Raises:
            SDKNotReadyError: Before init() or if already released.
            ReleaseError: On a non-success native code.
        """
        with self._lock:
            self.ensure_ready()
            check_status(self.native.release_resource(), ReleaseError)
            self._ready = False
            self._device_count = None
            logger.info("QHYCCD SDK released", generation=self._generation)
