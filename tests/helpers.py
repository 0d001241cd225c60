"""Shared test data and assertions for qhyccd-control.

Example:
    from tests.helpers import SMALL_MONO, assert_implements_protocol

    twin = DigitalTwinSDK(cameras=[SMALL_MONO])
    assert_implements_protocol(twin, QHYCCDNativeProtocol)
"""

from __future__ import annotations

import inspect
from typing import Any

from qhyccd_control.drivers.twin import TwinCameraSpec
from qhyccd_control.features import BayerPattern, CameraFeature
from qhyccd_control.types import ImageArea

# 64x48 sensors keep synthetic frames small; the overscan strip on the right
# makes the effective area narrower than the full image.
SMALL_MONO = TwinCameraSpec(
    name="QHYTEST-mono-0001",
    chip_width=153.6,
    chip_height=115.2,
    image_width=64,
    image_height=48,
    pixel_width=2.4,
    pixel_height=2.4,
    bits_per_pixel=8,
    overscan_area=ImageArea(start_x=60, start_y=0, width=4, height=48),
    effective_area=ImageArea(start_x=0, start_y=0, width=60, height=48),
    firmware=bytes([0x22, 0x05]),
)

SMALL_COLOR = TwinCameraSpec(
    name="QHYTEST-color-0002",
    chip_width=153.6,
    chip_height=115.2,
    image_width=64,
    image_height=48,
    pixel_width=2.4,
    pixel_height=2.4,
    bits_per_pixel=8,
    overscan_area=ImageArea(start_x=0, start_y=0, width=0, height=0),
    effective_area=ImageArea(start_x=0, start_y=0, width=64, height=48),
    features=SMALL_MONO.features | {CameraFeature.CAM_COLOR},
    bayer=BayerPattern.GB,
)


def assert_implements_protocol(instance: object, protocol: Any) -> None:
    """Assert that ``instance`` provides every method of ``protocol``.

    Business context: the twin stands in for the vendor library in every
    test; a method missing from either side would only show up on the
    bench with real hardware.

    Args:
        instance: Object to check.
        protocol: ``@runtime_checkable`` Protocol class.

    Raises:
        AssertionError: Listing the missing or non-callable members.
    """
    protocol_methods = {
        name
        for name, member in inspect.getmembers(protocol, inspect.isfunction)
        if not name.startswith("_")
    }
    missing = sorted(
        name
        for name in protocol_methods
        if not callable(getattr(instance, name, None))
    )
    if missing or not isinstance(instance, protocol):
        raise AssertionError(
            f"{type(instance).__name__} does not implement {protocol.__name__}. "
            f"Missing: {', '.join(missing) or 'unknown'}"
        )
