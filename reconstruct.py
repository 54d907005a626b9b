import argparse
import logging
import sys
from dataclasses import replace

from capture_io import load_capture, save_capture, save_reconstruction
from config import load_config
from session import PoseSession
from smoother import ConfigurationError

logger = logging.getLogger("reconstruct")


def build_parser():
    parser = argparse.ArgumentParser(description='Stabilized 3D pose trajectory from a video or a saved capture')
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('--video', help='Video file to run pose estimation on.')
    source.add_argument('--capture', help='Previously saved capture JSON.')
    parser.add_argument('--output', '-o', default='reconstruction.json', help='Output JSON (default: reconstruction.json).')
    parser.add_argument('--save-capture', help='Also write the raw capture JSON here (video input only).')
    parser.add_argument('--config', help='Settings JSON file.')
    parser.add_argument('--window', type=int, help='Smoothing window length (odd).')
    parser.add_argument('--order', type=int, help='Smoothing polynomial order.')
    parser.add_argument('--no-smoothing', action='store_true', help='Use raw landmarks.')
    parser.add_argument('--scale', type=float, help='Movement scale override (wins over the auto estimate).')
    parser.add_argument('--sample-fps', type=float, help='Frames per second sampled from the video.')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging.')
    return parser


def apply_overrides(config, args):
    smoothing = config.smoothing
    if args.window is not None:
        smoothing = replace(smoothing, window_length=args.window)
    if args.order is not None:
        smoothing = replace(smoothing, polynomial_order=args.order)
    if args.no_smoothing:
        smoothing = replace(smoothing, enabled=False)

    scale = config.scale
    if args.scale is not None:
        scale = replace(scale, override=args.scale)

    extraction = config.extraction
    if args.sample_fps is not None:
        extraction = replace(extraction, sample_fps=args.sample_fps)
    return replace(config, smoothing=smoothing, scale=scale, extraction=extraction)


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s:%(name)s:%(message)s',
    )
    config = apply_overrides(load_config(args.config), args)

    try:
        # Reject a bad smoothing setup before spending time on the video.
        config.smoothing_config().validate()

        if args.video:
            from pose_extractor import MediaPipePoseExtractor
            with MediaPipePoseExtractor(config.extraction) as extractor:
                capture = extractor.extract(args.video)
            if args.save_capture:
                save_capture(capture, args.save_capture, meta={
                    "video": args.video,
                    "sample_fps": config.extraction.sample_fps,
                })
                logger.info("Saved capture to %s", args.save_capture)
        else:
            capture = load_capture(args.capture)

        session = PoseSession.from_config(config, capture)
    except ConfigurationError as e:
        logger.error("Invalid smoothing settings: %s", e)
        return 1
    except (OSError, ValueError) as e:
        logger.error("%s", e)
        return 1

    if session.frame_count == 0:
        logger.warning("No frames with a detected pose")
    save_reconstruction(session, args.output)
    logger.info("Wrote %d frames to %s (scale %.2f, %s)",
                session.frame_count, args.output, session.scale, session.scale_source.value)
    return 0


if __name__ == "__main__":
    sys.exit(main())
