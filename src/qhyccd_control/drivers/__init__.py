"""Native layers for the QHYCCD SDK.

Supports two modes:
- HARDWARE: vendor libqhyccd loaded through ctypes (``native``)
- DIGITAL_TWIN: in-memory simulation for testing without a camera (``twin``)

Use drivers.config to switch modes:
    from qhyccd_control.drivers import config
    config.use_digital_twin()  # or config.use_hardware()
"""

from qhyccd_control.drivers import config, qhyccd_sdk
from qhyccd_control.drivers.config import (
    SDKConfig,
    SDKFactory,
    SDKMode,
    configure,
    get_factory,
    use_digital_twin,
    use_hardware,
)
from qhyccd_control.drivers.native import QHYCCDLibrary, QHYCCDNativeProtocol, load_library

__all__ = [
    # Submodules
    "config",
    "qhyccd_sdk",
    # Native boundary
    "QHYCCDLibrary",
    "QHYCCDNativeProtocol",
    "load_library",
    # Configuration
    "SDKMode",
    "SDKConfig",
    "SDKFactory",
    "get_factory",
    "configure",
    "use_digital_twin",
    "use_hardware",
]
