"""Data model shared by the SDK context, sessions and the native boundary.

Types defined here:
- CameraIdentity: 32-byte NUL-padded device id from enumeration
- SDKVersion: Native library build date
- CCDChipInfo: Physical and pixel geometry of the sensor
- ImageArea: Rectangle on the sensor (overscan / effective area, ROI)
- ImageData: One captured frame

These are plain records with no device behaviour, kept apart from the
session module so the native bindings can build them without circular
imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray

__all__ = [
    "CAMERA_ID_LENGTH",
    "CCDChipInfo",
    "CameraIdentity",
    "ImageArea",
    "ImageData",
    "SDKVersion",
]

#: Size of the id buffer filled by GetQHYCCDId (bytes).
CAMERA_ID_LENGTH = 32


@dataclass(frozen=True, slots=True)
class CameraIdentity:
    """Opaque device identity returned by enumeration.

    Wraps the exact 32-byte buffer the SDK filled in: ASCII device name,
    NUL terminator, NUL padding. The bytes are immutable, so one identity
    can be shared by every holder for the lifetime of a session.

    Attributes:
        raw: The 32-byte id buffer as returned by the SDK.

    Example:
        >>> ident = CameraIdentity.from_name("QHY178M-222b16468c5966524")
        >>> ident.name
        'QHY178M-222b16468c5966524'
        >>> len(ident.raw)
        32
    """

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, bytes):
            # bytearray/memoryview would let a caller mutate the id later
            object.__setattr__(self, "raw", bytes(self.raw))
        if len(self.raw) != CAMERA_ID_LENGTH:
            raise ValueError(
                f"Camera id must be exactly {CAMERA_ID_LENGTH} bytes, "
                f"got {len(self.raw)}"
            )

    @classmethod
    def from_name(cls, name: str) -> CameraIdentity:
        """Build an identity from a device name, NUL-padding to 32 bytes.

        Raises:
            ValueError: If the name is not ASCII or leaves no room for the
                NUL terminator.
        """
        encoded = name.encode("ascii")
        if len(encoded) >= CAMERA_ID_LENGTH:
            raise ValueError(
                f"Camera name must be shorter than {CAMERA_ID_LENGTH} bytes: {name!r}"
            )
        return cls(encoded.ljust(CAMERA_ID_LENGTH, b"\0"))

    @property
    def name(self) -> str:
        """Device name up to the first NUL."""
        return self.raw.split(b"\0", 1)[0].decode("ascii", errors="replace")

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True, slots=True)
class SDKVersion:
    """Native library build date (two-digit year) and sub-day build number."""

    year: int
    month: int
    day: int
    subday: int

    def __str__(self) -> str:
        return f"V20{self.year:02d}{self.month:02d}{self.day:02d}_{self.subday}"


@dataclass(frozen=True, slots=True)
class CCDChipInfo:
    """Sensor description from GetQHYCCDChipInfo.

    Attributes:
        chip_width: Chip width in millimetres.
        chip_height: Chip height in millimetres.
        image_width: Maximum image width in pixels.
        image_height: Maximum image height in pixels.
        pixel_width: Pixel width in micrometres.
        pixel_height: Pixel height in micrometres.
        bits_per_pixel: Native bit depth.
    """

    chip_width: float
    chip_height: float
    image_width: int
    image_height: int
    pixel_width: float
    pixel_height: float
    bits_per_pixel: int


@dataclass(frozen=True, slots=True)
class ImageArea:
    """Rectangle on the sensor, in pixels."""

    start_x: int
    start_y: int
    width: int
    height: int

    @property
    def end_x(self) -> int:
        """Exclusive right edge (start_x + width)."""
        return self.start_x + self.width

    @property
    def end_y(self) -> int:
        """Exclusive bottom edge (start_y + height)."""
        return self.start_y + self.height

    def contains(self, other: ImageArea) -> bool:
        """True when ``other`` lies entirely inside this area."""
        return (
            other.start_x >= self.start_x
            and other.start_y >= self.start_y
            and other.end_x <= self.end_x
            and other.end_y <= self.end_y
        )


@dataclass(frozen=True, slots=True)
class ImageData:
    """A captured frame.

    ``data`` is the whole buffer handed to the SDK, so its length equals the
    image size queried for the session's configuration at capture time. The
    pixel payload occupies the first ``width * height * channels`` samples.

    Attributes:
        data: Raw frame buffer.
        width: Frame width in pixels.
        height: Frame height in pixels.
        bits_per_pixel: Sample bit depth (8 or 16 in practice).
        channels: Samples per pixel (1 for mono/raw, 3 for debayered colour).
    """

    data: bytes
    width: int
    height: int
    bits_per_pixel: int
    channels: int

    @property
    def bytes_per_sample(self) -> int:
        """Bytes per sample: 1 up to 8 bits, 2 above (the SDK pads to 16)."""
        return 1 if self.bits_per_pixel <= 8 else 2

    @property
    def payload_size(self) -> int:
        """Bytes actually occupied by pixels."""
        return self.width * self.height * self.channels * self.bytes_per_sample

    def to_array(self) -> NDArray[np.uint8] | NDArray[np.uint16]:
        """View the pixel payload as a numpy array.

        Returns:
            Read-only array shaped (height, width) for single-channel frames
            or (height, width, channels) otherwise; uint8 for depths up to
            8 bits, uint16 above.

        Raises:
            ValueError: If the buffer is shorter than the declared geometry.
        """
        if len(self.data) < self.payload_size:
            raise ValueError(
                f"Frame buffer holds {len(self.data)} bytes, "
                f"{self.width}x{self.height}x{self.channels} "
                f"@ {self.bits_per_pixel} bpp needs {self.payload_size}"
            )

        dtype = np.uint8 if self.bytes_per_sample == 1 else np.uint16
        count = self.width * self.height * self.channels
        array = np.frombuffer(self.data, dtype=dtype, count=count)

        if self.channels == 1:
            return array.reshape((self.height, self.width))
        return array.reshape((self.height, self.width, self.channels))
