"""Configuration classes for the text spotting stages."""

from dataclasses import dataclass
from typing import List, Optional, Tuple


PAD_SYMBOL = "#"
DEFAULT_SYMBOLS = "0123456789abcdefghijklmnopqrstuvwxyz"


class ConfigurationError(ValueError):
    """Setup mistake that must abort processing before any frame."""


class AlphabetMismatchError(ConfigurationError):
    """Recognizer output width does not match the alphabet length."""


class Alphabet:
    """Recognizer symbol set with the reserved pad symbol appended last.

    Args:
        symbols: User supplied symbols, in model output order
        pad_symbol: Reserved blank symbol for CTC decoding
    """

    def __init__(self, symbols: str = DEFAULT_SYMBOLS, pad_symbol: str = PAD_SYMBOL):
        if len(pad_symbol) != 1:
            raise ConfigurationError(f"Pad symbol must be a single character, got {pad_symbol!r}")
        if not symbols:
            raise ConfigurationError("Alphabet must contain at least one symbol")
        if pad_symbol in symbols:
            raise ConfigurationError(
                f"Symbols set for text recognition must not contain reserved symbol '{pad_symbol}'"
            )
        if len(set(symbols)) != len(symbols):
            duplicates = sorted({s for s in symbols if symbols.count(s) > 1})
            raise ConfigurationError(f"Alphabet symbols must be distinct, repeated: {duplicates}")

        self.symbols = symbols
        self.pad_symbol = pad_symbol
        self.characters = symbols + pad_symbol

    @property
    def pad_index(self) -> int:
        return len(self.symbols)

    def __len__(self) -> int:
        return len(self.characters)

    def __getitem__(self, index: int) -> str:
        return self.characters[index]

    def __str__(self) -> str:
        return self.characters

    def __repr__(self):
        return f"Alphabet({self.symbols!r}, pad_symbol={self.pad_symbol!r})"


def _check_unit_interval(name: str, value: float):
    if not 0.0 <= value <= 1.0:
        raise ConfigurationError(f"{name} must be within [0, 1], got {value}")


@dataclass
class DetectorConfig:
    """Configuration for the text detection model."""
    input_size: Tuple[int, int] = None  # (W, H) fed to the network, None = model shape
    mean: List[float] = None  # Per-channel mean subtracted before inference
    std: List[float] = None  # Per-channel std divided before inference
    scale: float = 1.0  # Pixel value scale applied first
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration

    def __post_init__(self):
        if self.mean is None:
            self.mean = [0.0, 0.0, 0.0]
        if self.std is None:
            self.std = [1.0, 1.0, 1.0]


@dataclass
class RecognizerConfig:
    """Configuration for the text recognition model."""
    rec_image_shape: List[int] = None  # [C, H, W] used when the model shape is dynamic
    use_gpu: bool = False  # Enable CUDA GPU acceleration
    use_tensorrt: bool = False  # Enable TensorRT acceleration

    def __post_init__(self):
        if self.rec_image_shape is None:
            self.rec_image_shape = [1, 32, 120]


@dataclass
class PipelineConfig:
    """Per-run settings of the frame orchestrator and its decoders."""
    text_threshold: float = 0.8  # Text pixel admission threshold
    link_threshold: float = 0.8  # Neighbor link admission threshold
    neighbors: int = 8  # Scored link directions: 8 or 4
    box_method: str = "contour"  # 'contour' or 'cells'
    min_area: float = 300  # Minimum rectangle area in image pixels
    min_height: float = 10  # Minimum rectangle short side in image pixels
    min_confidence: float = 0.2  # Recognition rejection threshold
    alphabet: Alphabet = None
    max_regions: Optional[int] = None  # None or negative = unlimited
    crop_size: Optional[Tuple[int, int]] = None  # (W, H) of crops when no recognizer
    center_crop: bool = False  # Crop a centered window when no detector
    center_crop_fraction: float = 0.05

    def __post_init__(self):
        if self.alphabet is None:
            self.alphabet = Alphabet()
        elif isinstance(self.alphabet, str):
            self.alphabet = Alphabet(self.alphabet)
        _check_unit_interval("text_threshold", self.text_threshold)
        _check_unit_interval("link_threshold", self.link_threshold)
        _check_unit_interval("min_confidence", self.min_confidence)
        if self.neighbors not in (4, 8):
            raise ConfigurationError(f"neighbors must be 4 or 8, got {self.neighbors}")
        if self.box_method not in ("contour", "cells"):
            raise ConfigurationError(f"Unknown box_method: {self.box_method}")
        if not 0.0 < self.center_crop_fraction <= 1.0:
            raise ConfigurationError(
                f"center_crop_fraction must be within (0, 1], got {self.center_crop_fraction}"
            )
