from pathlib import Path

import pytest

from scene_text.ocr import text_detector, text_recognizer


class FakeSession:
    """Stands in for an ONNX Runtime session with fixed shapes and outputs."""

    input_shape = [1, 1, 32, 120]
    output_shape = [30, 1, 4]
    outputs: list = []

    def __init__(self, model_path, use_gpu=False, use_tensorrt=False) -> None:
        self.model_path = Path(model_path)
        self.batches = []

    def static_dim(self, axis):
        dim = self.input_shape[axis]
        return dim if isinstance(dim, int) else None

    def run(self, image_array):
        self.batches.append(image_array)
        return self.outputs


@pytest.fixture
def fake_session(monkeypatch):
    """Patch both model wrappers to load FakeSession; shapes and outputs are set per test."""
    monkeypatch.setattr(text_recognizer, "ONNXInferenceBase", FakeSession)
    monkeypatch.setattr(text_detector, "ONNXInferenceBase", FakeSession)
    return FakeSession
