"""
Text spotting stages built on PixelLink detection and CTC recognition

- TextDetector: image -> text and link score maps
- PixelLinkPostProcess: score maps -> oriented regions
- rectify_region: oriented region -> upright fixed-size crop
- TextRecognizer: crop -> per-step character probabilities
- CTCGreedyDecode: probabilities -> (text, confidence)
"""

from .config import (
    Alphabet,
    AlphabetMismatchError,
    ConfigurationError,
    DetectorConfig,
    PipelineConfig,
    RecognizerConfig,
)
from .geometry import (
    SENTINEL_REGION,
    OrientedRegion,
    clip_points,
    fallback_corners,
    fallback_window,
    get_affine_crop,
    rectify_region,
    top_left_point,
)
from .postprocess import (
    CTCGreedyDecode,
    DecodedText,
    PixelLinkPostProcess,
    ctc_greedy_decode,
    decode_regions,
    filter_by_confidence,
)
from .text_detector import TextDetector
from .text_recognizer import TextRecognizer

__all__ = [
    "Alphabet",
    "AlphabetMismatchError",
    "ConfigurationError",
    "DetectorConfig",
    "PipelineConfig",
    "RecognizerConfig",
    "SENTINEL_REGION",
    "OrientedRegion",
    "clip_points",
    "fallback_corners",
    "fallback_window",
    "get_affine_crop",
    "rectify_region",
    "top_left_point",
    "CTCGreedyDecode",
    "DecodedText",
    "PixelLinkPostProcess",
    "ctc_greedy_decode",
    "decode_regions",
    "filter_by_confidence",
    "TextDetector",
    "TextRecognizer",
]
