"""Vendor code tables: control/capability features and mode selectors.

The native library only understands raw integers, so every enumeration here
is a verbatim copy of the vendor's numbering. Values are never renumbered;
new codes are appended with their vendor value. Note that 38 is unused and
the auto-algorithm controls start at 1024.

Types:
    CameraFeature: Control and capability codes for IsQHYCCDControlAvailable
        and SetQHYCCDParam.
    CameraStreamMode: Single-frame vs live capture selector.
    BayerPattern: Colour filter layout reported by the CAM_COLOR probe.
    CameraTypeCode: Transport / sensor type codes reported by the SDK.

Tables:
    FEATURE_CODES: CameraFeature -> raw integer.
    FEATURES_BY_CODE: raw integer -> CameraFeature.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import IntEnum
from types import MappingProxyType

__all__ = [
    "BayerPattern",
    "CameraFeature",
    "CameraStreamMode",
    "CameraTypeCode",
    "FEATURES_BY_CODE",
    "FEATURE_CODES",
    "feature_from_code",
]


class CameraFeature(IntEnum):
    """Control/capability codes, numbered exactly as in the vendor SDK."""

    CONTROL_BRIGHTNESS = 0  # image brightness
    CONTROL_CONTRAST = 1  # image contrast
    CONTROL_WBR = 2  # red of white balance
    CONTROL_WBB = 3  # blue of white balance
    CONTROL_WBG = 4  # green of white balance
    CONTROL_GAMMA = 5  # screen gamma
    CONTROL_GAIN = 6  # camera gain
    CONTROL_OFFSET = 7  # camera offset
    CONTROL_EXPOSURE = 8  # exposure time (us)
    CONTROL_SPEED = 9  # transfer speed
    CONTROL_TRANSFERBIT = 10  # image depth bits
    CONTROL_CHANNELS = 11  # image channels
    CONTROL_USBTRAFFIC = 12  # hblank
    CONTROL_ROWNOISERE = 13  # row denoise
    CONTROL_CURTEMP = 14  # current sensor temperature
    CONTROL_CURPWM = 15  # current cooler pwm
    CONTROL_MANULPWM = 16  # set cooler pwm
    CONTROL_CFWPORT = 17  # colour filter wheel port
    CONTROL_COOLER = 18  # camera has cooler
    CONTROL_ST4PORT = 19  # camera has ST4 port
    CAM_COLOR = 20  # returns the bayer id on colour cameras
    CAM_BIN1X1MODE = 21
    CAM_BIN2X2MODE = 22
    CAM_BIN3X3MODE = 23
    CAM_BIN4X4MODE = 24
    CAM_MECHANICALSHUTTER = 25
    CAM_TRIGER_INTERFACE = 26
    CAM_TECOVERPROTECT_INTERFACE = 27
    CAM_SIGNALCLAMP_INTERFACE = 28
    CAM_FINETONE_INTERFACE = 29
    CAM_SHUTTERMOTORHEATING_INTERFACE = 30
    CAM_CALIBRATEFPN_INTERFACE = 31
    CAM_CHIPTEMPERATURESENSOR_INTERFACE = 32
    CAM_USBREADOUTSLOWEST_INTERFACE = 33
    CAM_8BITS = 34
    CAM_16BITS = 35
    CAM_GPS = 36
    CAM_IGNOREOVERSCAN_INTERFACE = 37
    QHYCCD_3A_AUTOEXPOSURE = 39
    QHYCCD_3A_AUTOFOCUS = 40
    CONTROL_AMPV = 41
    CONTROL_VCAM = 42  # virtual camera on/off
    CAM_VIEW_MODE = 43
    CONTROL_CFWSLOTSNUM = 44
    IS_EXPOSING_DONE = 45
    SCREEN_STRETCH_B = 46
    SCREEN_STRETCH_W = 47
    CONTROL_DDR = 48
    CAM_LIGHT_PERFORMANCE_MODE = 49
    CAM_QHY5II_GUIDE_MODE = 50
    DDR_BUFFER_CAPACITY = 51
    DDR_BUFFER_READ_THRESHOLD = 52
    DEFAULT_GAIN = 53
    DEFAULT_OFFSET = 54
    OUTPUT_DATA_ACTUAL_BITS = 55
    OUTPUT_DATA_ALIGNMENT = 56
    CAM_SINGLEFRAMEMODE = 57
    CAM_LIVEVIDEOMODE = 58
    CAM_IS_COLOR = 59
    HAS_HARDWARE_FRAME_COUNTER = 60
    CONTROL_MAX_ID_ERROR = 61  # unused, previous max index
    CAM_HUMIDITY = 62
    CAM_PRESSURE = 63
    CONTROL_VACUUM_PUMP = 64
    CONTROL_SENSOR_CHAMBER_CYCLE_PUMP = 65
    CAM_32BITS = 66
    CAM_SENSOR_ULVO_STATUS = 67
    CAM_SENSOR_PHASE_RETRAIN = 68
    CAM_INIT_CONFIG_FROM_FLASH = 69
    CAM_TRIGER_MODE = 70
    CAM_TRIGER_OUT = 71
    CAM_BURST_MODE = 72
    CAM_SPEAKER_LED_ALARM = 73
    CAM_WATCH_DOG_FPGA = 74
    CAM_BIN6X6MODE = 75
    CAM_BIN8X8MODE = 76
    CAM_GLOBAL_SENSOR_GPS_LED = 77
    CONTROL_IMG_PROC = 78
    CONTROL_REMOVE_RBI = 79
    CONTROL_GLOBAL_RESET = 80
    CONTROL_FRAME_DETECT = 81
    CAM_GAIN_DB_CONVERSION = 82
    CAM_CURVE_SYSTEM_GAIN = 83
    CAM_CURVE_FULL_WELL = 84
    CAM_CURVE_READOUT_NOISE = 85
    CONTROL_MAX_ID = 86
    CONTROL_AUTOWHITEBALANCE = 1024
    CONTROL_AUTOEXPOSURE = 1025
    CONTROL_AUTOEXP_MESSURE_VALUE = 1026
    CONTROL_AUTOEXP_MESSURE_METHOD = 1027
    CONTROL_IMAGE_STABILIZATION = 1028
    CONTROL_GAIN_DB = 1029


class CameraStreamMode(IntEnum):
    """Capture branch selector passed to SetQHYCCDStreamMode."""

    SINGLE_FRAME = 0
    LIVE = 1


class BayerPattern(IntEnum):
    """Bayer layout returned by IsQHYCCDControlAvailable(CAM_COLOR)."""

    GB = 1
    GR = 2
    BG = 3
    RG = 4


class CameraTypeCode(IntEnum):
    """Camera type / transport codes reported by the SDK."""

    NOT_COOLED = 1
    COOLED = 2
    MONO = 3
    COLOR = 4
    USB_ASYNC = 5
    USB_SYNC = 6
    QGIGAE = 7
    WINPCAP = 8
    PCIE = 9


FEATURE_CODES: Mapping[CameraFeature, int] = MappingProxyType(
    {feature: int(feature) for feature in CameraFeature}
)

FEATURES_BY_CODE: Mapping[int, CameraFeature] = MappingProxyType(
    {code: feature for feature, code in FEATURE_CODES.items()}
)


def feature_from_code(code: int) -> CameraFeature:
    """Look up the feature for a raw vendor code.

    Raises:
        ValueError: If the code is not in the vendor table.
    """
    try:
        return FEATURES_BY_CODE[code]
    except KeyError:
        raise ValueError(f"Unknown camera feature code: {code}") from None
