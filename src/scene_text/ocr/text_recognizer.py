"""
Text Recognition Module - Stage 2 of the spotting pipeline

Recognizes text from rectified region crops with a CTC-trained network.
"""

import logging
from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np

from .config import Alphabet, AlphabetMismatchError, RecognizerConfig
from .onnx_base import ONNXInferenceBase
from .postprocess import CTCGreedyDecode, DecodedText

logger = logging.getLogger(__name__)


class TextRecognizer:
    """Text recognition module.

    Resizes any crop to the network input, runs inference and exposes the
    raw (T, A) probabilities as well as the greedy decoding of them.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        alphabet: Alphabet,
        config: RecognizerConfig = None,
    ):
        """Initialize text recognizer.

        Args:
            model_path: Path to recognition ONNX model
            alphabet: Symbols matching the model output, pad symbol last
            config: Recognizer configuration (uses defaults if None)

        Raises:
            AlphabetMismatchError: If the model declares an output width
                different from the alphabet length
        """
        if config is None:
            config = RecognizerConfig()

        self.config = config
        self.alphabet = alphabet
        self.session = ONNXInferenceBase(
            model_path,
            use_gpu=config.use_gpu,
            use_tensorrt=config.use_tensorrt,
        )

        default_c, default_h, default_w = config.rec_image_shape
        self.channels = self.session.static_dim(1) or default_c
        height = self.session.static_dim(2) or default_h
        width = self.session.static_dim(3) or default_w
        self.input_size = (int(width), int(height))

        output_width = self.session.output_shape[-1] if self.session.output_shape else None
        if isinstance(output_width, int) and output_width != len(alphabet):
            raise AlphabetMismatchError(
                f"The text recognition model does not correspond to alphabet: "
                f"output width {output_width}, alphabet length {len(alphabet)}"
            )

        self.postprocess_op = CTCGreedyDecode(alphabet)

    def resize_norm_img(self, img: np.ndarray) -> np.ndarray:
        """Resize a crop to the network input.

        Args:
            img: Input image (H, W, C) in BGR or (H, W) grayscale

        Returns:
            Processed image (C, H, W) as float32
        """
        width, height = self.input_size
        if self.channels == 1 and img.ndim == 3:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2GRAY)
        elif self.channels == 3 and img.ndim == 2:
            img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)

        resized = cv2.resize(img, (width, height)).astype(np.float32)
        if resized.ndim == 2:
            return resized[np.newaxis, :, :]
        return resized.transpose((2, 0, 1))

    def infer(self, img: np.ndarray) -> np.ndarray:
        """Return the (T, A) probability sequence for one crop."""
        batch = self.resize_norm_img(img)[np.newaxis, :]
        preds = self.session.run(batch)[0]
        probs = self.postprocess_op.as_matrix(preds)
        if probs.shape[1] != len(self.alphabet):
            raise AlphabetMismatchError(
                f"The text recognition model does not correspond to alphabet: "
                f"output width {probs.shape[1]}, alphabet length {len(self.alphabet)}"
            )
        return probs

    def recognize(self, img: np.ndarray) -> DecodedText:
        """Recognize text in a single crop.

        Returns:
            DecodedText of (text, confidence), unfiltered
        """
        return self.postprocess_op(self.infer(img))

    __call__ = recognize

    def __repr__(self):
        return (
            f"TextRecognizer(model={self.session.model_path.name}, "
            f"input_size={self.input_size}, alphabet={len(self.alphabet)} symbols)"
        )
