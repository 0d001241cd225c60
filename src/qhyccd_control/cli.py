"""CLI entry point for qhyccd-control.

Provides the ``qhyccd-demo`` console script, which runs the bench check
sequence against the first attached camera: init, scan, open, configure,
capture one frame, close, release.

Usage::

    # Digital twin (no hardware needed)
    qhyccd-demo

    # Real camera, 2 ms exposure, save the frame
    qhyccd-demo --mode hardware --exposure-us 2000 --output frame.png

    # Live-stream branch with JSON logs
    qhyccd-demo --live --json-logs --log-level DEBUG

Exit codes:
    0 on success, 1 on any QHYCCDError, 2 if the camera lacks the
    requested stream mode.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path

import cv2

from qhyccd_control.capture import RetryPolicy, capture_single_frame, wait_for_live_frame
from qhyccd_control.drivers.config import SDKConfig, SDKFactory, SDKMode
from qhyccd_control.errors import QHYCCDError
from qhyccd_control.features import CameraFeature, CameraStreamMode
from qhyccd_control.observability import LogContext, configure_logging, get_logger
from qhyccd_control.sdk import SDKContext
from qhyccd_control.session import CameraSession
from qhyccd_control.types import ImageData

logger = get_logger(__name__)

PROG_NAME = "qhyccd-demo"

# Bench defaults for the check sequence
DEFAULT_EXPOSURE_US = 2000.0
DEFAULT_GAIN = 10.0
DEFAULT_OFFSET = 140.0
DEFAULT_USB_TRAFFIC = 255.0
DEFAULT_TRANSFER_BITS = 16

EXIT_OK = 0
EXIT_SDK_ERROR = 1
EXIT_UNSUPPORTED = 2


class UnsupportedModeError(Exception):
    """The camera does not offer the requested stream mode."""


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG_NAME,
        description="Capture one frame from the first QHYCCD camera",
    )
    parser.add_argument(
        "--mode",
        choices=("twin", "hardware"),
        default="twin",
        help="Native layer: digital twin or vendor library (default: twin)",
    )
    parser.add_argument(
        "--library-path",
        default=None,
        help="Explicit libqhyccd path (hardware mode)",
    )
    parser.add_argument(
        "--live",
        action="store_true",
        help="Use the live-stream branch instead of single frame",
    )
    parser.add_argument(
        "--exposure-us",
        type=float,
        default=DEFAULT_EXPOSURE_US,
        help=f"Exposure time in microseconds (default: {DEFAULT_EXPOSURE_US:g})",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the captured frame to this image file (e.g. frame.png)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        help="Log level (default: INFO)",
    )
    return parser


def _configure_session(session: CameraSession, exposure_us: float) -> None:
    """Query geometry and apply gain, offset, exposure, ROI, binning, bit depth."""
    overscan = session.query_overscan_area()
    effective = session.query_effective_area()
    info = session.query_ccd_info()
    logger.info(
        "Sensor geometry",
        overscan=str(overscan),
        effective=str(effective),
        image=f"{info.image_width}x{info.image_height}",
        pixel_um=info.pixel_width,
        bpp=info.bits_per_pixel,
    )
    bayer = session.bayer_pattern()
    logger.info("Sensor type", color=bayer is not None, bayer=bayer.name if bayer else None)

    session.set_parameter_if_supported(CameraFeature.CONTROL_USBTRAFFIC, DEFAULT_USB_TRAFFIC)
    session.set_parameter_if_supported(CameraFeature.CONTROL_GAIN, DEFAULT_GAIN)
    session.set_parameter_if_supported(CameraFeature.CONTROL_OFFSET, DEFAULT_OFFSET)
    session.set_parameter(CameraFeature.CONTROL_EXPOSURE, exposure_us)

    session.set_roi_area(effective)
    session.set_bin_mode(1, 1)
    if session.is_supported(CameraFeature.CONTROL_TRANSFERBIT):
        session.set_bit_mode(DEFAULT_TRANSFER_BITS)


def run_demo(
    sdk: SDKContext,
    *,
    live: bool = False,
    exposure_us: float = DEFAULT_EXPOSURE_US,
    retry: RetryPolicy | None = None,
) -> ImageData:
    """Run the check sequence on an uninitialized context and return the frame.

    The context is always released before returning, also on error.

    Args:
        sdk: Fresh SDKContext (not yet initialized).
        live: Capture through the live stream instead of a single exposure.
        exposure_us: Exposure time in microseconds.
        retry: Live-frame polling bounds.

    Raises:
        QHYCCDError: On the first native failure.
        UnsupportedModeError: If the camera lacks the requested stream mode.
    """
    mode = CameraStreamMode.LIVE if live else CameraStreamMode.SINGLE_FRAME
    mode_feature = (
        CameraFeature.CAM_LIVEVIDEOMODE if live else CameraFeature.CAM_SINGLEFRAMEMODE
    )

    logger.info("QHYCCD SDK", version=str(sdk.get_sdk_version()))
    with sdk:
        count = sdk.scan()
        if count == 0:
            raise QHYCCDError("No QHYCCD camera found")

        with sdk.open_camera(sdk.get_identity(0)) as session, LogContext(
            camera=session.name
        ):
            logger.info(session.read_firmware_version())
            if not session.is_supported(mode_feature):
                raise UnsupportedModeError(f"{mode_feature.name} is not supported")

            session.set_stream_mode(mode)
            session.set_read_mode(0)
            session.initialize()
            _configure_session(session, exposure_us)

            if not live:
                image = capture_single_frame(session)
            else:
                session.begin_live()
                size = session.query_image_size()
                try:
                    image = wait_for_live_frame(session, size, retry)
                finally:
                    session.end_live()

        logger.info(
            "Frame captured",
            width=image.width,
            height=image.height,
            bpp=image.bits_per_pixel,
            channels=image.channels,
            size=len(image.data),
        )
        return image


def save_image(image: ImageData, path: Path) -> None:
    """Write ``image`` with OpenCV; format follows the file extension.

    Raises:
        OSError: If OpenCV cannot write the file.
    """
    if not cv2.imwrite(str(path), image.to_array()):
        raise OSError(f"OpenCV could not write {path}")
    logger.info("Frame saved", path=str(path))


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point for qhyccd-demo.

    Returns:
        Exit code (see module docstring).

    Raises:
        SystemExit: On --help or argument parsing errors.
    """
    args = _build_parser().parse_args(argv)
    configure_logging(
        level=getattr(logging, args.log_level),
        json_format=args.json_logs,
        force=True,
    )

    config = SDKConfig(
        mode=SDKMode.HARDWARE if args.mode == "hardware" else SDKMode.DIGITAL_TWIN,
        library_path=args.library_path,
    )
    try:
        sdk = SDKFactory(config).create_context()
    except RuntimeError as e:
        logger.error("Cannot load native layer", error=str(e))
        return EXIT_SDK_ERROR

    try:
        image = run_demo(sdk, live=args.live, exposure_us=args.exposure_us)
        if args.output is not None:
            save_image(image, args.output)
    except UnsupportedModeError as e:
        logger.error("Stream mode unavailable", error=str(e))
        return EXIT_UNSUPPORTED
    except QHYCCDError as e:
        logger.error("Demo failed", error=str(e), error_type=type(e).__name__)
        return EXIT_SDK_ERROR
    except OSError as e:
        logger.error("Cannot save frame", error=str(e))
        return EXIT_SDK_ERROR

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
