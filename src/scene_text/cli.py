"""
Command Line Interface for scene text spotting
"""

import argparse
import logging
import sys
from pathlib import Path

from .ocr.config import (
    DEFAULT_SYMBOLS,
    Alphabet,
    ConfigurationError,
    DetectorConfig,
    PipelineConfig,
    RecognizerConfig,
)
from .pipeline import TextSpotter
from .render import save_annotated
from .sources import make_source


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scene-text",
        description="Detect and recognize text in images, videos or camera frames",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print one CSV line per region for a single image
  scene-text -i street.jpg -m-td pixel_link.onnx -m-tr text_rec.onnx -r

  # Detection only, save annotated frames of a video
  scene-text -i clip.mp4 --input-type video -m-td pixel_link.onnx --output-dir out/

  # Recognition only on a centered window of each webcam frame
  scene-text -i 0 --input-type webcam -m-tr text_rec.onnx --center-crop -r
        """
    )

    # Input/Output
    parser.add_argument('-i', '--input', required=True,
                        help='Image, image list/directory, video path or camera index')
    parser.add_argument('--input-type', default='image',
                        choices=['image', 'list', 'video', 'webcam'],
                        help='Kind of input (default: image)')
    parser.add_argument('-r', '--raw', action='store_true',
                        help='Print region coordinates and text as CSV lines')
    parser.add_argument('--output-dir', type=str, default=None,
                        help='Directory for annotated frames')

    # Models
    parser.add_argument('-m-td', '--detector-model', type=str, default=None,
                        help='Text detection ONNX model')
    parser.add_argument('-m-tr', '--recognizer-model', type=str, default=None,
                        help='Text recognition ONNX model')
    parser.add_argument('--alphabet', type=str, default=DEFAULT_SYMBOLS,
                        help='Recognizer symbols, without the reserved pad symbol "#"')
    parser.add_argument('--detector-size', type=int, nargs=2, metavar=('W', 'H'),
                        default=[1280, 768],
                        help='Detector input width and height (default: 1280 768)')
    parser.add_argument('--use-gpu', action='store_true',
                        help='Enable CUDA acceleration when available')

    # Thresholds
    parser.add_argument('--cls-pixel-thr', type=float, default=0.8,
                        help='Text pixel threshold (default: 0.8)')
    parser.add_argument('--link-pixel-thr', type=float, default=0.8,
                        help='Link threshold (default: 0.8)')
    parser.add_argument('--thr', type=float, default=0.2,
                        help='Minimum recognition confidence (default: 0.2)')
    parser.add_argument('--max-rect-num', type=int, default=-1,
                        help='Keep only the largest N regions (default: unlimited)')
    parser.add_argument('--center-crop', action='store_true',
                        help='Without a detector, recognize a centered window only')

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable verbose output')
    return parser


def build_spotter(args) -> TextSpotter:
    """Create models and orchestrator from parsed arguments."""
    if not args.detector_model and not args.recognizer_model:
        raise ConfigurationError("Neither --detector-model nor --recognizer-model is set")

    # Validate the alphabet before loading any model
    alphabet = Alphabet(args.alphabet)
    config = PipelineConfig(
        text_threshold=args.cls_pixel_thr,
        link_threshold=args.link_pixel_thr,
        min_confidence=args.thr,
        alphabet=alphabet,
        max_regions=args.max_rect_num,
        center_crop=args.center_crop,
    )

    from .ocr.text_detector import TextDetector
    from .ocr.text_recognizer import TextRecognizer

    detector = None
    if args.detector_model:
        detector = TextDetector(
            args.detector_model,
            DetectorConfig(input_size=tuple(args.detector_size), use_gpu=args.use_gpu),
        )

    recognizer = None
    if args.recognizer_model:
        recognizer = TextRecognizer(
            args.recognizer_model,
            alphabet,
            RecognizerConfig(use_gpu=args.use_gpu),
        )

    return TextSpotter(detector, recognizer, config)


def main(argv=None):
    """Main CLI entry point"""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        spotter = build_spotter(args)
        output_dir = Path(args.output_dir) if args.output_dir else None

        if args.verbose:
            print("=" * 70)
            print("Scene Text CLI")
            print("=" * 70)
            print(f"Input:  {args.input} ({args.input_type})")
            print(spotter)
            print("=" * 70)

        def on_frame(image, frame, stats):
            if args.raw:
                for line in frame.lines():
                    print(line)
            if output_dir is not None:
                save_annotated(image, frame, output_dir / f"frame_{stats.frames:05d}.png", stats)

        with make_source(args.input_type, args.input) as source:
            stats = spotter.run(source, on_frame=on_frame)

        if not args.raw:
            print(stats.summary())
        return 0

    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        return 130
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
