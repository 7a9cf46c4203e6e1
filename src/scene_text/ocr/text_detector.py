"""
Text Detection Module - Stage 1 of the spotting pipeline

Runs a PixelLink-style network and turns its logits into score maps:
one text-pixel probability map and one link probability map per
neighbor direction.
"""

import logging
from pathlib import Path
from typing import List, Tuple, Union

import numpy as np

from .config import DetectorConfig
from .geometry import OrientedRegion
from .onnx_base import ONNXInferenceBase
from .postprocess import PixelLinkPostProcess
from .preprocess import create_operators, transform

logger = logging.getLogger(__name__)


def pairwise_softmax(logits: np.ndarray) -> np.ndarray:
    """Positive-class probability of (2K, H, W) logits grouped in pairs.

    Channels (2k, 2k+1) are the negative and positive logits of map k.

    Returns:
        Array of shape (K, H, W)
    """
    channels, height, width = logits.shape
    if channels % 2:
        raise ValueError(f"Expected an even number of logit channels, got {channels}")
    pairs = logits.reshape(channels // 2, 2, height, width).astype(np.float32)
    pairs = pairs - pairs.max(axis=1, keepdims=True)
    exp = np.exp(pairs)
    return exp[:, 1] / exp.sum(axis=1)


def logits_to_scores(
    segm_logits: np.ndarray,
    link_logits: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    """Convert raw network outputs to (text_scores, link_scores).

    Args:
        segm_logits: Segmentation logits (1, 2, H, W) or (2, H, W)
        link_logits: Link logits (1, 2K, H, W) or (2K, H, W)

    Returns:
        Tuple of text scores (H, W) and link scores (K, H, W)
    """
    if segm_logits.ndim == 4:
        segm_logits = segm_logits[0]
    if link_logits.ndim == 4:
        link_logits = link_logits[0]

    text_scores = pairwise_softmax(segm_logits)[0]
    link_scores = pairwise_softmax(link_logits)
    return text_scores, link_scores


class TextDetector:
    """Text detection module.

    Takes a BGR image and returns its score maps. detect() also decodes
    them into regions; TextSpotter decodes with its own per-run thresholds.
    """

    def __init__(
        self,
        model_path: Union[str, Path],
        config: DetectorConfig = None,
    ):
        """Initialize text detector.

        Args:
            model_path: Path to detection ONNX model
            config: Detector configuration (uses defaults if None)
        """
        if config is None:
            config = DetectorConfig()

        self.config = config
        self.session = ONNXInferenceBase(
            model_path,
            use_gpu=config.use_gpu,
            use_tensorrt=config.use_tensorrt,
        )

        if config.input_size is not None:
            width, height = config.input_size
        else:
            width = self.session.static_dim(3)
            height = self.session.static_dim(2)
            if width is None or height is None:
                raise ValueError(
                    f"Detector {model_path} has a dynamic input shape, "
                    "set DetectorConfig.input_size"
                )
        self.input_size = (int(width), int(height))

        self.preprocess_ops = create_operators([
            {"ResizeImage": {"width": self.input_size[0], "height": self.input_size[1]}},
            {
                "NormalizeImage": {
                    "scale": config.scale,
                    "mean": config.mean,
                    "std": config.std,
                }
            },
            {"ToCHWImage": None},
            {"KeepKeys": {"keep_keys": ["image", "shape"]}},
        ])
        self.postprocess_op = PixelLinkPostProcess()

    def preprocess(self, image: np.ndarray) -> np.ndarray:
        """Resize and normalize one BGR image into a (1, 3, H, W) batch."""
        img, _ = transform({"image": image.copy()}, self.preprocess_ops)
        return np.expand_dims(img, axis=0).astype(np.float32)

    def infer(self, image: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Compute score maps for a single image.

        Args:
            image: Input image as numpy array (H, W, C) in BGR

        Returns:
            Tuple of text scores (H', W') and link scores (K, H', W') at
            the network output stride
        """
        outputs = self.session.run(self.preprocess(image))
        segm_logits, link_logits = self._split_outputs(outputs)
        return logits_to_scores(segm_logits, link_logits)

    __call__ = infer

    def detect(self, image: np.ndarray, postprocess_op: PixelLinkPostProcess = None) -> List[OrientedRegion]:
        """Detect oriented text regions in image coordinates.

        Args:
            image: Input image as numpy array (H, W, C) in BGR
            postprocess_op: Decoder to use (default thresholds if None)
        """
        if postprocess_op is None:
            postprocess_op = self.postprocess_op
        h, w = image.shape[:2]
        text_scores, link_scores = self.infer(image)
        return postprocess_op(text_scores, link_scores, (w, h))

    @staticmethod
    def _split_outputs(outputs: List[np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
        """Tell the segmentation output (2 channels) from the link output."""
        if len(outputs) != 2:
            raise RuntimeError(f"Expected 2 detector outputs, got {len(outputs)}")
        first, second = outputs
        if first.shape[-3] == 2 and second.shape[-3] != 2:
            return first, second
        if second.shape[-3] == 2:
            return second, first
        raise RuntimeError(
            f"Cannot identify segmentation output among shapes {first.shape}, {second.shape}"
        )

    def __repr__(self):
        return f"TextDetector(model={self.session.model_path.name}, input_size={self.input_size})"
