"""
Inference session lifecycle.

Wraps an ONNX Runtime session built from an in-memory model buffer. The
session is exclusively owned by one pipeline, serializes calls through a
lock and must be closed when the pipeline is torn down.
"""

import logging
import threading
from typing import Dict, Any, List, Optional
import numpy as np
import onnxruntime as ort

from ..core.config import PipelineConfig
from ..core.error_handling import ModelLoadError, InferenceError

logger = logging.getLogger(__name__)

OPTIMIZATION_LEVELS = {
    'disable': ort.GraphOptimizationLevel.ORT_DISABLE_ALL,
    'basic': ort.GraphOptimizationLevel.ORT_ENABLE_BASIC,
    'extended': ort.GraphOptimizationLevel.ORT_ENABLE_EXTENDED,
    'all': ort.GraphOptimizationLevel.ORT_ENABLE_ALL,
}


def resolve_providers(device: str) -> List[str]:
    """
    Resolve a device name to ONNX Runtime execution providers.

    CPU is always last so the engine can fall back to it.

    Args:
        device: One of 'auto', 'cpu', 'cuda', 'coreml'

    Returns:
        Ordered list of provider names
    """
    available = ort.get_available_providers()

    if device in ("auto", "cuda") and "CUDAExecutionProvider" in available:
        return ["CUDAExecutionProvider", "CPUExecutionProvider"]
    if device in ("auto", "coreml") and "CoreMLExecutionProvider" in available:
        return ["CoreMLExecutionProvider", "CPUExecutionProvider"]
    if device not in ("auto", "cpu"):
        logger.warning(f"Requested device '{device}' not available, using CPU")

    return ["CPUExecutionProvider"]


class InferenceSession:
    """
    Loaded model ready to run.

    The model buffer is only read during construction. At most one
    ``run`` call executes at a time.
    """

    def __init__(self, model_buffer: bytes, config: Optional[PipelineConfig] = None):
        """
        Build the session from serialized model bytes.

        Args:
            model_buffer: Raw ONNX model bytes
            config: Pipeline configuration (uses defaults if None)

        Raises:
            ModelLoadError: If the bytes are malformed, the engine rejects the
                model, or the model lacks the expected tensor names
        """
        self.config = config or PipelineConfig()
        self.config.validate()
        self._lock = threading.Lock()
        self._session = None

        if not model_buffer:
            raise ModelLoadError("Model buffer is empty")

        self.providers = resolve_providers(self.config.device)

        options = ort.SessionOptions()
        options.graph_optimization_level = OPTIMIZATION_LEVELS[self.config.graph_optimization_level]
        if self.config.intra_op_num_threads > 0:
            options.intra_op_num_threads = self.config.intra_op_num_threads

        try:
            session = ort.InferenceSession(
                bytes(model_buffer), sess_options=options, providers=self.providers
            )
        except Exception as e:
            logger.error(f"Failed to create inference session: {e}")
            raise ModelLoadError(
                f"Failed to load model: {e}",
                details={'model_bytes': len(model_buffer), 'providers': self.providers}
            ) from e

        if self.config.validate_io_names:
            self._check_io_names(session)
        self._check_input_shape(session)

        self._session = session
        logger.info(
            f"Inference session created from {len(model_buffer)} bytes "
            f"on {session.get_providers()}"
        )

    def _check_io_names(self, session) -> None:
        """Reject models that do not expose the expected tensor names."""
        input_names = [i.name for i in session.get_inputs()]
        output_names = [o.name for o in session.get_outputs()]

        if self.config.input_name not in input_names:
            raise ModelLoadError(
                f"Model has no input named '{self.config.input_name}' (inputs: {input_names})",
                details={'inputs': input_names}
            )
        if self.config.output_name not in output_names:
            raise ModelLoadError(
                f"Model has no output named '{self.config.output_name}' (outputs: {output_names})",
                details={'outputs': output_names}
            )

    def _check_input_shape(self, session) -> None:
        """Warn when the declared static input shape differs from the contract."""
        for model_input in session.get_inputs():
            if model_input.name != self.config.input_name:
                continue
            declared = model_input.shape
            expected = self.config.tensor_shape
            static = [d for d in declared if isinstance(d, int)]
            if len(declared) != len(expected) or any(
                isinstance(d, int) and d != e for d, e in zip(declared, expected)
            ):
                logger.warning(
                    f"Model input '{model_input.name}' declares shape {declared}, "
                    f"pipeline submits {list(expected)}"
                )
            elif len(static) < len(declared):
                logger.debug(f"Model input has dynamic dimensions: {declared}")

    @property
    def is_open(self) -> bool:
        """True until close() is called."""
        return self._session is not None

    def run(self, tensor: np.ndarray):
        """
        Run the model on one [1, 3, H, W] tensor.

        Args:
            tensor: float32 array already shaped to config.tensor_shape

        Returns:
            The engine's raw output for config.output_name

        Raises:
            InferenceError: If the session is closed or the engine fails
        """
        with self._lock:
            if self._session is None:
                raise InferenceError("Inference session is not initialized or already closed")
            try:
                outputs = self._session.run(
                    [self.config.output_name], {self.config.input_name: tensor}
                )
            except Exception as e:
                logger.error(f"Inference failed: {e}")
                raise InferenceError(
                    str(e),
                    details={'input_shape': list(tensor.shape)}
                ) from e
        return outputs[0]

    def get_model_info(self) -> Dict[str, Any]:
        """
        Describe the loaded model.

        Returns:
            Dictionary with declared inputs/outputs and providers
        """
        if self._session is None:
            return {'loaded': False}

        return {
            'loaded': True,
            'providers': self._session.get_providers(),
            'inputs': [
                {'name': i.name, 'shape': i.shape, 'type': i.type}
                for i in self._session.get_inputs()
            ],
            'outputs': [
                {'name': o.name, 'shape': o.shape, 'type': o.type}
                for o in self._session.get_outputs()
            ],
        }

    def close(self) -> None:
        """Release the engine session."""
        with self._lock:
            if self._session is not None:
                self._session = None
                logger.info("Inference session closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with cleanup."""
        self.close()
