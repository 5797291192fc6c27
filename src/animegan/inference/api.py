"""
Image Conversion API.

High-level API for converting image files and arrays with an AnimeGAN-style
ONNX model. Designed for easy integration into existing codebases.
"""

import logging
from dataclasses import fields, replace
from typing import Dict, Any, Optional, Callable
from pathlib import Path
import time
import numpy as np
import onnxruntime as ort

from .pipeline import ConversionPipeline
from ..core.config import PipelineConfig, ConversionResult
from ..core.data_models import PixelBuffer
from ..core.error_handling import (
    PipelineError, InferenceError, get_global_error_handler, get_user_message
)
from ..core.image_handler import ImageFileHandler

logger = logging.getLogger(__name__)

# Config keys that require a new session when changed
SESSION_KEYS = (
    'target_size', 'input_name', 'output_name', 'device',
    'intra_op_num_threads', 'graph_optimization_level', 'validate_io_names',
    'resample', 'channel_order',
)

ProgressCallback = Callable[[str, float], None]


class ImageConversionAPI:
    """
    High-level API for image-to-image conversion.

    Wraps a ConversionPipeline with file handling, progress reporting and
    result objects. Conversion methods return a ConversionResult instead of
    raising; ``convert_pixels`` raises the pipeline's typed errors.

    Example:
        ```python
        from animegan.inference.api import ImageConversionAPI
        from animegan.core.config import PipelineConfig

        api = ImageConversionAPI(PipelineConfig(device='cpu'))
        api.load_model('path/to/animegan.onnx')

        result = api.convert_image('photo.jpg', 'anime.png')
        if result.success:
            print(f"Converted in {result.processing_time:.2f}s")
        ```
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        """
        Initialize the Image Conversion API.

        Args:
            config: Optional pipeline configuration (uses defaults if None)
        """
        self.config = config or PipelineConfig()
        self.config.validate()

        self.image_handler = ImageFileHandler()
        self.error_handler = get_global_error_handler()
        self.pipeline: Optional[ConversionPipeline] = None

        # State
        self.model_loaded = False
        self.model_path: Optional[str] = None

        logger.info("ImageConversionAPI initialized")

    def load_model(self, model_path: str) -> bool:
        """
        Load a model file from disk.

        Args:
            model_path: Path to the ONNX model file

        Returns:
            True if model loaded successfully, False otherwise
        """
        self._release_pipeline()
        try:
            self.pipeline = ConversionPipeline.from_file(model_path, self.config)
        except PipelineError as e:
            self.error_handler.handle_error(e, context="load_model")
            return False

        self.model_loaded = True
        self.model_path = str(model_path)
        logger.info(f"Model loaded: {self.pipeline.get_model_info()}")
        return True

    def load_model_bytes(self, model_buffer: bytes) -> bool:
        """
        Load a model from an in-memory buffer.

        The buffer is handed to the engine and not kept, so a later
        session-affecting config change needs the model loaded again.

        Args:
            model_buffer: Raw ONNX model bytes

        Returns:
            True if model loaded successfully, False otherwise
        """
        self._release_pipeline()
        try:
            self.pipeline = ConversionPipeline(model_buffer, self.config)
        except PipelineError as e:
            self.error_handler.handle_error(e, context="load_model_bytes")
            return False

        self.model_loaded = True
        self.model_path = None
        logger.info(f"Model loaded from buffer: {self.pipeline.get_model_info()}")
        return True

    def _release_pipeline(self) -> None:
        """Close the current pipeline, if any."""
        if self.pipeline is not None:
            self.pipeline.close()
            self.pipeline = None
        self.model_loaded = False

    def convert_pixels(self, pixels: PixelBuffer) -> PixelBuffer:
        """
        Convert a pixel buffer.

        Raises:
            InferenceError: If no model is loaded or the engine fails
            InvalidInputError: If the buffer is malformed
        """
        if not self.model_loaded or self.pipeline is None:
            raise InferenceError("No model loaded. Call load_model() first.")
        return self.pipeline.run(pixels)

    def convert_image(
        self,
        input_path: str,
        output_path: str,
        progress_callback: Optional[ProgressCallback] = None
    ) -> ConversionResult:
        """
        Convert an image file and save the result.

        Args:
            input_path: Path to input image file
            output_path: Path to save the converted image
            progress_callback: Optional callback for progress updates

        Returns:
            ConversionResult with processing information
        """
        start_time = time.time()
        result = ConversionResult(
            success=False,
            processing_time=0.0,
            input_size=(0, 0),
            output_path=output_path
        )

        if not Path(input_path).exists():
            result.error_message = f"Input file not found: {input_path}"
            result.error_type = 'FileNotFoundError'
            return result

        if not self.model_loaded:
            result.error_message = "No model loaded. Call load_model() first."
            return result

        try:
            if progress_callback:
                progress_callback("Loading input image", 0.1)

            load_start = time.time()
            pixels = self.image_handler.load_image(input_path)
            result.input_size = pixels.size
            result.add_stage_timing('load', time.time() - load_start)

            output = self._run_pipeline(pixels, result, progress_callback)

            if progress_callback:
                progress_callback("Saving output image", 0.9)

            save_start = time.time()
            self.image_handler.save_image(output, output_path)
            result.add_stage_timing('save', time.time() - save_start)

            result.output = output
            result.success = True
            result.processing_time = time.time() - start_time

            if progress_callback:
                progress_callback("Conversion completed", 1.0)

            logger.info(f"Conversion completed successfully in {result.processing_time:.2f}s")

        except (PipelineError, FileNotFoundError, IOError) as e:
            self._record_failure(result, e, "convert_image", start_time)

        return result

    def convert_array(
        self,
        input_array: np.ndarray,
        progress_callback: Optional[ProgressCallback] = None
    ) -> ConversionResult:
        """
        Convert an RGB or RGBA uint8 array in memory.

        Args:
            input_array: (height, width, 3) or (height, width, 4) uint8 array
            progress_callback: Optional callback for progress updates

        Returns:
            ConversionResult whose ``output`` holds the converted PixelBuffer
        """
        start_time = time.time()
        input_size = (0, 0)
        if getattr(input_array, 'ndim', 0) >= 2:
            input_size = (input_array.shape[1], input_array.shape[0])

        result = ConversionResult(
            success=False,
            processing_time=0.0,
            input_size=input_size
        )

        if not self.model_loaded:
            result.error_message = "No model loaded. Call load_model() first."
            return result

        try:
            if progress_callback:
                progress_callback("Creating pixel buffer from array", 0.1)

            pixels = PixelBuffer.from_array(input_array)
            result.output = self._run_pipeline(pixels, result, progress_callback)
            result.success = True
            result.processing_time = time.time() - start_time

            if progress_callback:
                progress_callback("Conversion completed", 1.0)

            logger.info(f"Array conversion completed successfully in {result.processing_time:.2f}s")

        except PipelineError as e:
            self._record_failure(result, e, "convert_array", start_time)

        return result

    def _run_pipeline(
        self,
        pixels: PixelBuffer,
        result: ConversionResult,
        progress_callback: Optional[ProgressCallback]
    ) -> PixelBuffer:
        """Run the pipeline and copy its stage timings into the result."""
        if pixels.width != self.config.target_size or pixels.height != self.config.target_size:
            result.add_warning(
                f"Input {pixels.width}x{pixels.height} stretched to "
                f"{self.config.target_size}x{self.config.target_size}"
            )

        if progress_callback:
            progress_callback("Running model", 0.3)

        output = self.convert_pixels(pixels)
        for stage, seconds in self.pipeline.last_timings.items():
            result.add_stage_timing(stage, seconds)
        return output

    def _record_failure(
        self,
        result: ConversionResult,
        error: Exception,
        context: str,
        start_time: float
    ) -> None:
        """Fill a failed result; no output is kept."""
        error_info = self.error_handler.handle_error(error, context=context)
        result.success = False
        result.output = None
        result.error_message = str(error)
        result.error_type = error_info['error_type']
        result.add_warning(get_user_message(error))
        result.processing_time = time.time() - start_time
        logger.error(f"Conversion failed: {error}")

    def get_conversion_metrics(self, result: ConversionResult) -> Dict[str, Any]:
        """
        Summarize a conversion result.

        Args:
            result: Conversion result to analyze

        Returns:
            Dictionary with result fields and throughput
        """
        metrics = {
            'success': result.success,
            'processing_time': result.processing_time,
            'input_size': result.input_size,
            'output_path': result.output_path,
            'warnings': result.warnings,
            'error_message': result.error_message,
            'error_type': result.error_type,
            'stage_timings': result.stage_timings,
        }

        if result.success and result.processing_time > 0:
            width, height = result.input_size
            metrics['processing_efficiency'] = {
                'megapixels_processed': (width * height) / 1e6,
                'images_per_second': 1.0 / result.processing_time,
            }

        if self.model_loaded and self.pipeline:
            metrics['model_info'] = self.pipeline.get_model_info()

        return metrics

    def set_processing_config(self, **kwargs) -> None:
        """
        Update configuration at runtime.

        The update is validated as a whole before it is applied; a rejected
        update leaves the current configuration in place. Session-affecting
        keys rebuild the pipeline from the model file.

        Args:
            **kwargs: Configuration parameters to update

        Raises:
            ConfigurationError: If the updated configuration is invalid
        """
        field_names = {f.name for f in fields(self.config)}
        known = {}
        for key, value in kwargs.items():
            if key in field_names:
                known[key] = value
            else:
                logger.warning(f"Unknown config parameter: {key}")

        candidate = replace(self.config, **known)
        candidate.validate()
        self.config = candidate
        for key, value in known.items():
            logger.info(f"Updated config: {key} = {value}")

        if self.model_loaded and any(key in SESSION_KEYS for key in known):
            if self.model_path is None:
                logger.warning("Model was loaded from a buffer; load it again to apply changes")
                self._release_pipeline()
                return
            logger.info("Reloading model due to config change")
            self.load_model(self.model_path)

    def get_system_info(self) -> Dict[str, Any]:
        """
        Get system information for debugging.

        Returns:
            Dictionary with engine and configuration information
        """
        info = {
            'onnxruntime_version': ort.__version__,
            'available_providers': ort.get_available_providers(),
            'device': self.config.device,
            'config': self.config.to_dict(),
            'model_loaded': self.model_loaded,
            'model_path': self.model_path,
        }

        if self.model_loaded and self.pipeline:
            info['model_info'] = self.pipeline.get_model_info()

        return info

    def cleanup(self) -> None:
        """Release the pipeline and its session."""
        self._release_pipeline()
        self.model_path = None
        logger.info("ImageConversionAPI cleaned up")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with cleanup."""
        self.cleanup()
