"""
Image file handler for the conversion pipeline.

Loads image files into ARGB PixelBuffers and writes PixelBuffers back to
disk. TIFF goes through tifffile, every other format through Pillow.
"""

import logging
from typing import Dict, Any, Union
from pathlib import Path
import numpy as np
import tifffile
from PIL import Image, ImageOps, UnidentifiedImageError

from .data_models import PixelBuffer
from .error_handling import InvalidInputError

logger = logging.getLogger(__name__)

TIFF_EXTENSIONS = ('.tif', '.tiff')
PILLOW_EXTENSIONS = ('.png', '.jpg', '.jpeg', '.bmp', '.webp')
# Formats that cannot carry an alpha channel
OPAQUE_EXTENSIONS = ('.jpg', '.jpeg', '.bmp')


class ImageFileHandler:
    """
    Handles loading, validation, and saving of image files as PixelBuffers.

    Features:
    - EXIF orientation applied on load, so rotated camera photos enter the
      pipeline upright
    - Grayscale, RGB and RGBA sources accepted
    - 16-bit TIFF data reduced to 8 bits
    """

    def __init__(self):
        self.supported_extensions = TIFF_EXTENSIONS + PILLOW_EXTENSIONS

    def is_supported(self, file_path: Union[str, Path]) -> bool:
        """Check whether the file extension is supported."""
        return Path(file_path).suffix.lower() in self.supported_extensions

    def load_image(self, file_path: Union[str, Path]) -> PixelBuffer:
        """
        Load an image file into an ARGB pixel buffer.

        Args:
            file_path: Path to the image file

        Returns:
            PixelBuffer with the file's dimensions

        Raises:
            FileNotFoundError: If the file doesn't exist
            InvalidInputError: If the format is unsupported or the file is
                corrupted
        """
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Image file not found: {file_path}")

        if not self.is_supported(file_path):
            raise InvalidInputError(
                f"Unsupported image format: {file_path.suffix}",
                details={'path': str(file_path), 'supported': list(self.supported_extensions)}
            )

        logger.info(f"Loading image: {file_path}")
        if file_path.suffix.lower() in TIFF_EXTENSIONS:
            pixels = self._load_tiff(file_path)
        else:
            pixels = self._load_with_pillow(file_path)

        logger.debug(f"Loaded {pixels.width}x{pixels.height} image from {file_path}")
        return pixels

    def _load_with_pillow(self, file_path: Path) -> PixelBuffer:
        """Decode with Pillow and apply the EXIF orientation tag."""
        try:
            with Image.open(file_path) as image:
                image = ImageOps.exif_transpose(image)
                return PixelBuffer.from_image(image)
        except (UnidentifiedImageError, OSError) as e:
            raise InvalidInputError(
                f"Corrupted or invalid image file: {e}",
                details={'path': str(file_path)}
            ) from e

    def _load_tiff(self, file_path: Path) -> PixelBuffer:
        """Read the first page of a TIFF file."""
        try:
            with tifffile.TiffFile(file_path) as tif:
                data = tif.pages[0].asarray()
        except (tifffile.TiffFileError, OSError, IndexError) as e:
            raise InvalidInputError(
                f"Corrupted or invalid TIFF file: {e}",
                details={'path': str(file_path)}
            ) from e

        if data.dtype == np.uint16:
            data = (data >> 8).astype(np.uint8)
        elif data.dtype != np.uint8:
            raise InvalidInputError(
                f"Unsupported TIFF sample type: {data.dtype}",
                details={'path': str(file_path), 'dtype': str(data.dtype)}
            )

        if data.ndim == 2:
            data = np.repeat(data[:, :, np.newaxis], 3, axis=2)
        elif data.ndim != 3 or data.shape[2] not in (3, 4):
            raise InvalidInputError(
                f"Expected grayscale, RGB or RGBA TIFF, got shape {data.shape}",
                details={'path': str(file_path), 'shape': data.shape}
            )

        return PixelBuffer.from_array(data)

    def save_image(self, pixels: PixelBuffer, output_path: Union[str, Path]) -> None:
        """
        Save a pixel buffer as an image file.

        Args:
            pixels: Buffer to save
            output_path: Destination; the extension selects the format

        Raises:
            InvalidInputError: If the buffer is malformed or the format is
                unsupported
            IOError: If there's an error writing the file
        """
        output_path = Path(output_path)
        if not self.is_supported(output_path):
            raise InvalidInputError(
                f"Unsupported output format: {output_path.suffix}",
                details={'path': str(output_path)}
            )

        pixels.validate()
        output_path.parent.mkdir(parents=True, exist_ok=True)
        suffix = output_path.suffix.lower()

        logger.info(f"Saving {pixels.width}x{pixels.height} image to: {output_path}")
        try:
            if suffix in TIFF_EXTENSIONS:
                rgb = np.ascontiguousarray(pixels.to_rgb_array())
                tifffile.imwrite(output_path, rgb, photometric='rgb')
            else:
                image = pixels.to_image()
                if suffix in OPAQUE_EXTENSIONS:
                    image = image.convert('RGB')
                image.save(output_path)
        except (OSError, ValueError) as e:
            raise IOError(f"Error saving image file {output_path}: {e}") from e

    def validate_file(self, file_path: Union[str, Path]) -> bool:
        """
        Check that a file exists, is supported and decodes.

        Returns:
            True if the file can be loaded
        """
        try:
            self.load_image(file_path)
            return True
        except (FileNotFoundError, InvalidInputError) as e:
            logger.warning(f"Image validation failed for {file_path}: {e}")
            return False

    def get_image_info(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """
        Extract basic information about an image file.

        Args:
            file_path: Path to the image file

        Returns:
            Dict with path, size in bytes, width, height and format

        Raises:
            FileNotFoundError: If the file doesn't exist
            InvalidInputError: If the file cannot be decoded
        """
        file_path = Path(file_path)
        pixels = self.load_image(file_path)
        return {
            'file_path': str(file_path),
            'file_size_bytes': file_path.stat().st_size,
            'width': pixels.width,
            'height': pixels.height,
            'format': file_path.suffix.lower().lstrip('.'),
        }
