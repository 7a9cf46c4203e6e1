"""
Scene Text Reader
PixelLink region decoding, affine rectification and CTC decoding with ONNX models
"""

from .ocr import (
    Alphabet,
    ConfigurationError,
    OrientedRegion,
    PipelineConfig,
    TextDetector,
    TextRecognizer,
)
from .pipeline import FrameResult, RegionResult, RunStats, TextSpotter, format_region_line

__version__ = "0.1.0"
__all__ = [
    'Alphabet',
    'ConfigurationError',
    'OrientedRegion',
    'PipelineConfig',
    'TextDetector',
    'TextRecognizer',
    'TextSpotter',
    'FrameResult',
    'RegionResult',
    'RunStats',
    'format_region_line',
]
