"""
Encode -> infer -> decode pipeline with an owned session and reused buffers.
"""

import logging
import threading
import time
from pathlib import Path
from typing import Dict, Optional
import numpy as np

from ..core.config import PipelineConfig
from ..core.data_models import PixelBuffer
from ..core.error_handling import ModelLoadError
from .encoder import PixelEncoder
from .decoder import PixelDecoder
from .session import InferenceSession
from .invoker import infer

logger = logging.getLogger(__name__)


class ConversionPipeline:
    """
    Runs one image through the model, synchronously and single-shot.

    The pipeline owns its InferenceSession and preallocated tensor buffers.
    Calls are serialized; no stage retries or falls back to a previous
    output.

    Example:
        ```python
        with ConversionPipeline.from_file('animegan.onnx') as pipeline:
            styled = pipeline.run(PixelBuffer.from_image(image))
        ```
    """

    def __init__(self, model_buffer: bytes, config: Optional[PipelineConfig] = None):
        """
        Initialize pipeline.

        Args:
            model_buffer: Raw ONNX model bytes, not retained after loading
            config: Pipeline configuration (uses defaults if None)

        Raises:
            ConfigurationError: If the configuration is invalid
            ModelLoadError: If the session cannot be created
        """
        self.config = config or PipelineConfig()
        self.config.validate()

        self.encoder = PixelEncoder(self.config.target_size, self.config.resample)
        self.decoder = PixelDecoder(self.config.target_size, self.config.channel_order)
        self.session = InferenceSession(model_buffer, self.config)

        # Scratch buffers reused by every run
        self._input_tensor = self.encoder.allocate_tensor()
        self._output_tensor = self.encoder.allocate_tensor()

        self._lock = threading.Lock()
        self.last_timings: Dict[str, float] = {}

    @classmethod
    def from_file(cls, model_path: str, config: Optional[PipelineConfig] = None) -> 'ConversionPipeline':
        """
        Read a model file from disk and build a pipeline from it.

        Raises:
            ModelLoadError: If the file cannot be read or loaded
        """
        path = Path(model_path)
        try:
            model_buffer = path.read_bytes()
        except OSError as e:
            raise ModelLoadError(
                f"Cannot read model file {path}: {e}",
                details={'model_path': str(path)}
            ) from e

        logger.info(f"Loading model: {path} ({len(model_buffer)} bytes)")
        return cls(model_buffer, config)

    def encode(self, pixels: PixelBuffer) -> np.ndarray:
        """Encode into the pipeline's input tensor buffer."""
        return self.encoder.encode(pixels, out=self._input_tensor)

    def infer(self, tensor: np.ndarray) -> np.ndarray:
        """Run the model into the pipeline's output tensor buffer."""
        return infer(self.session, tensor, out=self._output_tensor)

    def decode(self, tensor: np.ndarray, out: Optional[np.ndarray] = None) -> PixelBuffer:
        """Decode a tensor into a new or caller-supplied pixel buffer."""
        return self.decoder.decode(tensor, out=out)

    def run(self, pixels: PixelBuffer, out: Optional[np.ndarray] = None) -> PixelBuffer:
        """
        Convert one image.

        Args:
            pixels: Input image of any size
            out: Optional preallocated uint8 buffer of
                target_size * target_size * 4 bytes for the result

        Returns:
            target_size x target_size PixelBuffer

        Raises:
            InvalidInputError: If the input buffer is malformed
            InferenceError: If the engine fails or the pipeline is closed
        """
        with self._lock:
            timings = {}

            start = time.perf_counter()
            tensor = self.encode(pixels)
            timings['encode'] = time.perf_counter() - start

            start = time.perf_counter()
            output = self.infer(tensor)
            timings['infer'] = time.perf_counter() - start

            start = time.perf_counter()
            result = self.decode(output, out=out)
            timings['decode'] = time.perf_counter() - start

            self.last_timings = timings

        logger.debug(
            f"Converted {pixels.width}x{pixels.height} image: "
            + ", ".join(f"{k}={v * 1000:.1f}ms" for k, v in timings.items())
        )
        return result

    @property
    def is_open(self) -> bool:
        """True while the session is usable."""
        return self.session.is_open

    def get_model_info(self) -> Dict:
        """Describe the loaded model."""
        return self.session.get_model_info()

    def close(self) -> None:
        """Release the session. Further runs raise InferenceError."""
        self.session.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with cleanup."""
        self.close()
