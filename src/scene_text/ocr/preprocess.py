"""Preprocessing operations for the detection network."""

from typing import Dict, List, Tuple

import cv2
import numpy as np


class ResizeImage:
    """Resize image to the fixed network input size."""

    def __init__(self, width, height, **kwargs):
        self.width = int(width)
        self.height = int(height)

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        src_h, src_w = img.shape[:2]
        if img.ndim == 2:
            img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)

        if (src_w, src_h) != (self.width, self.height):
            img = cv2.resize(img, (self.width, self.height))

        data['image'] = img
        data['shape'] = np.array([
            src_h, src_w, self.height / float(src_h), self.width / float(src_w)
        ])
        return data


class NormalizeImage:
    """Normalize image values."""

    def __init__(self, scale=1.0, mean=(0.0, 0.0, 0.0), std=(1.0, 1.0, 1.0), **kwargs):
        self.scale = np.float32(scale)
        self.mean = np.array(mean).reshape((1, 1, 3)).astype('float32')
        self.std = np.array(std).reshape((1, 1, 3)).astype('float32')

    def __call__(self, data: Dict) -> Dict:
        img = data['image'].astype('float32')
        img = img * self.scale
        data['image'] = (img - self.mean) / self.std
        return data


class ToCHWImage:
    """Convert image from HWC to CHW format."""

    def __call__(self, data: Dict) -> Dict:
        img = data['image']
        data['image'] = img.transpose((2, 0, 1))
        return data


class KeepKeys:
    """Keep only specified keys in data dict."""

    def __init__(self, keep_keys: List[str], **kwargs):
        self.keep_keys = keep_keys

    def __call__(self, data: Dict) -> Tuple:
        return tuple(data[key] for key in self.keep_keys)


_OPERATORS = {
    "ResizeImage": ResizeImage,
    "NormalizeImage": NormalizeImage,
    "ToCHWImage": ToCHWImage,
    "KeepKeys": KeepKeys,
}


def create_operators(op_param_list: List[Dict]):
    """Create preprocessing operators from config list.

    Args:
        op_param_list: List of dicts like [{"OpName": {params}}]

    Returns:
        List of operator instances
    """
    ops = []
    for operator in op_param_list:
        if not isinstance(operator, dict) or len(operator) != 1:
            raise ValueError(f"Operator spec must be a single-key dict, got {operator!r}")
        op_name = list(operator)[0]
        if op_name not in _OPERATORS:
            raise ValueError(f"Unknown preprocessing operator: {op_name}")
        param = {} if operator[op_name] is None else operator[op_name]
        ops.append(_OPERATORS[op_name](**param))
    return ops


def transform(data: Dict, ops: List):
    """Apply preprocessing operators sequentially.

    Returns:
        Output of the last operator, or None if any operator drops the sample
    """
    for op in ops:
        data = op(data)
        if data is None:
            return None
    return data
