"""
Test fixtures and utilities for pipeline testing.

Writes synthetic models and images into a temporary directory and hands out
configurations suited to fast CPU-only tests.
"""

import logging
import tempfile
import shutil
from typing import Optional, List
from pathlib import Path

from .synthetic_data import SyntheticImageGenerator, SyntheticModelBuilder, RED, GREEN, BLUE, WHITE
from ..core.config import PipelineConfig
from ..core.data_models import PixelBuffer
from ..core.image_handler import ImageFileHandler

logger = logging.getLogger(__name__)


class TestDataFixtures:
    """
    Provides reusable test fixtures for system testing.

    Features:
    - Synthetic model files (identity, negate, scale, mismatched contracts)
    - Image files in any supported format
    - Temporary file management
    - Configuration fixtures
    """

    # Not a test class despite the name
    __test__ = False

    def __init__(self, temp_dir: Optional[str] = None):
        """
        Initialize test fixtures.

        Args:
            temp_dir: Optional temporary directory (creates one if None)
        """
        if temp_dir is None:
            self.temp_dir = tempfile.mkdtemp()
            self._cleanup_temp_dir = True
        else:
            self.temp_dir = temp_dir
            self._cleanup_temp_dir = False

        self.temp_path = Path(self.temp_dir)
        self.temp_path.mkdir(parents=True, exist_ok=True)

        self.image_generator = SyntheticImageGenerator(random_seed=42)
        self.model_builder = SyntheticModelBuilder()
        self.image_handler = ImageFileHandler()

        logger.info(f"TestDataFixtures initialized with temp_dir: {self.temp_dir}")

    def cleanup(self):
        """Clean up temporary files and directories."""
        if self._cleanup_temp_dir and Path(self.temp_dir).exists():
            shutil.rmtree(self.temp_dir)
            logger.info("Cleaned up temporary test directory")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with cleanup."""
        self.cleanup()

    def save_model(
        self,
        kind: str = "identity",
        filename: Optional[str] = None,
        target_size: Optional[int] = None,
        **kwargs
    ) -> str:
        """
        Write a synthetic model file.

        Args:
            kind: 'identity', 'negate', 'scale', 'channel_reverse', 'renamed_io',
                'fixed_shape' or 'corrupt'
            filename: Optional file name (defaults to '<kind>.onnx')
            target_size: Spatial size the model declares (defaults to 512)
            **kwargs: Passed to the builder (e.g. factor for 'scale')

        Returns:
            Path to the saved model
        """
        builder = SyntheticModelBuilder(target_size) if target_size else self.model_builder
        builders = {
            'identity': builder.identity_model,
            'negate': builder.negate_model,
            'scale': builder.scale_model,
            'channel_reverse': builder.channel_reverse_model,
            'renamed_io': builder.renamed_io_model,
            'fixed_shape': builder.fixed_shape_model,
            'corrupt': builder.corrupt_model,
        }
        if kind not in builders:
            raise ValueError(f"Unknown model kind: {kind}")

        model_path = self.temp_path / (filename or f"{kind}.onnx")
        model_path.write_bytes(builders[kind](**kwargs))
        return str(model_path)

    def save_image(self, pixels: PixelBuffer, filename: str, subdirectory: str = "") -> str:
        """
        Save a pixel buffer as an image file.

        Args:
            pixels: Buffer to save
            filename: File name with extension
            subdirectory: Optional subdirectory

        Returns:
            Path to saved file
        """
        save_dir = self.temp_path / subdirectory if subdirectory else self.temp_path
        save_dir.mkdir(parents=True, exist_ok=True)
        file_path = save_dir / filename
        self.image_handler.save_image(pixels, file_path)
        return str(file_path)

    def get_quadrant_image(self, size: int = 512) -> PixelBuffer:
        """Red, green, blue and white quadrants."""
        return self.image_generator.quadrants(size, (RED, GREEN, BLUE, WHITE))

    def create_image_directory(
        self,
        num_images: int = 3,
        extension: str = ".png",
        subdirectory: str = "inputs",
        size: int = 64
    ) -> List[str]:
        """
        Create a directory of gradient images.

        Returns:
            List of written file paths
        """
        paths = []
        for i in range(num_images):
            pixels = self.image_generator.gradient(size + i, size)
            paths.append(self.save_image(pixels, f"image_{i:03d}{extension}", subdirectory))

        logger.info(f"Created {num_images} test images in {self.temp_path / subdirectory}")
        return paths

    def get_pipeline_config(self, config_type: str = "default") -> PipelineConfig:
        """
        Get pipeline configuration for testing.

        Args:
            config_type: Type of configuration ('default', 'small', 'bgr')

        Returns:
            PipelineConfig instance
        """
        configs = {
            'default': PipelineConfig(device='cpu', intra_op_num_threads=1),
            'small': PipelineConfig(target_size=32, device='cpu', intra_op_num_threads=1),
            'bgr': PipelineConfig(
                device='cpu', intra_op_num_threads=1, channel_order='bgr'
            ),
        }

        return configs.get(config_type, configs['default'])
