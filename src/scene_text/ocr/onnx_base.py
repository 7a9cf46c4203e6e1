"""ONNX Runtime session shared by the detector and recognizer wrappers."""

import logging
from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import onnxruntime

logger = logging.getLogger(__name__)


class ONNXInferenceBase:
    """ONNX Runtime session with hardware acceleration."""

    def __init__(
        self,
        model_path: Union[str, Path],
        use_gpu: bool = False,
        use_tensorrt: bool = False,
    ):
        """Initialize ONNX Runtime session.

        Args:
            model_path: Path to ONNX model file
            use_gpu: Enable CUDA GPU acceleration
            use_tensorrt: Enable TensorRT acceleration (requires TensorRT)
        """
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(f"Model not found: {model_path}")

        providers = self._get_providers(use_gpu, use_tensorrt)
        self.session = onnxruntime.InferenceSession(
            str(self.model_path),
            providers=providers,
        )
        logger.info(
            "Loaded %s with providers %s",
            self.model_path.name, self.session.get_providers(),
        )

        inputs = self.session.get_inputs()
        self.input_names = [node.name for node in inputs]
        self.output_names = [node.name for node in self.session.get_outputs()]
        self.input_shape = list(inputs[0].shape)
        self.output_shape = list(self.session.get_outputs()[0].shape)

    @staticmethod
    def _get_providers(use_gpu: bool, use_tensorrt: bool) -> List:
        """Get execution providers based on hardware availability.

        Priority: TensorRT > CUDA > CPU
        """
        available_providers = onnxruntime.get_available_providers()
        providers = []

        if use_tensorrt and "TensorrtExecutionProvider" in available_providers:
            providers.append(('TensorrtExecutionProvider', {}))

        if use_gpu and "CUDAExecutionProvider" in available_providers:
            providers.append((
                'CUDAExecutionProvider',
                {"cudnn_conv_algo_search": "DEFAULT"}
            ))

        providers.append('CPUExecutionProvider')
        return providers

    def static_dim(self, axis: int) -> Optional[int]:
        """Return a fixed input dimension, or None when it is symbolic."""
        if axis >= len(self.input_shape):
            return None
        dim = self.input_shape[axis]
        return dim if isinstance(dim, int) and dim > 0 else None

    def run(self, image_array: np.ndarray) -> List[np.ndarray]:
        """Run inference on a single batched input.

        Returns:
            Output arrays in model output order
        """
        input_feed = {self.input_names[0]: image_array}
        return self.session.run(self.output_names, input_feed=input_feed)
