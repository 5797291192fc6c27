"""
Data models for the conversion pipeline.

Key concepts:
- PixelBuffer: interleaved 4-byte-per-pixel image, byte order A, R, G, B
  (one big-endian packed word ``(a << 24) | (r << 16) | (g << 8) | b`` per
  pixel), row-major.
- Tensor: flat float32 array in planar [1, 3, H, W] layout. Tensors are
  plain numpy arrays; the helpers below only check and reshape them.
"""

import logging
from typing import Tuple, Union
import numpy as np
from dataclasses import dataclass
from PIL import Image

from .config import NUM_CHANNELS, TARGET_SIZE
from .error_handling import InvalidInputError

logger = logging.getLogger(__name__)

BYTES_PER_PIXEL = 4

# Byte offsets inside one pixel
ALPHA, RED, GREEN, BLUE = 0, 1, 2, 3

# Packed word dtype, big-endian so that alpha is the first byte in memory
ARGB_WORD = np.dtype('>u4')


@dataclass
class PixelBuffer:
    """
    Interleaved ARGB image buffer with explicit dimensions.

    The buffer may wrap any byte payload; ``validate`` enforces the
    ``len(data) == width * height * 4`` invariant.
    """
    data: np.ndarray
    width: int
    height: int

    def __post_init__(self):
        """
        Normalize the payload to a flat uint8 array.

        Integer arrays of 4-byte items are taken as packed ARGB words and
        laid out big-endian, whatever their in-memory byte order.

        Raises:
            InvalidInputError: If the array dtype is neither uint8 nor a
                4-byte integer
        """
        if not isinstance(self.data, np.ndarray):
            self.data = np.frombuffer(bytes(self.data), dtype=np.uint8)
        elif self.data.dtype != np.uint8:
            if self.data.dtype.kind in 'iu' and self.data.dtype.itemsize == BYTES_PER_PIXEL:
                self.data = self.data.reshape(-1).astype(np.uint32).astype(ARGB_WORD).view(np.uint8)
            else:
                raise InvalidInputError(
                    f"Pixel data must be uint8 bytes or 32-bit ARGB words, got {self.data.dtype}",
                    details={'dtype': str(self.data.dtype)}
                )
        self.data = self.data.reshape(-1)

    @property
    def expected_nbytes(self) -> int:
        """Number of bytes the dimensions call for."""
        return self.width * self.height * BYTES_PER_PIXEL

    @property
    def nbytes(self) -> int:
        """Number of bytes actually held."""
        return int(self.data.size)

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height) of the image."""
        return (self.width, self.height)

    def validate(self) -> None:
        """
        Check the buffer against its declared dimensions.

        Raises:
            InvalidInputError: If dimensions are not positive or the byte
                length does not equal width * height * 4
        """
        if self.width <= 0 or self.height <= 0:
            raise InvalidInputError(
                f"Pixel buffer dimensions must be positive, got {self.width}x{self.height}",
                details={'width': self.width, 'height': self.height}
            )
        if self.nbytes != self.expected_nbytes:
            raise InvalidInputError(
                f"Pixel buffer holds {self.nbytes} bytes, expected "
                f"{self.expected_nbytes} for {self.width}x{self.height}",
                details={
                    'width': self.width,
                    'height': self.height,
                    'nbytes': self.nbytes,
                    'expected_nbytes': self.expected_nbytes
                }
            )

    def to_array(self) -> np.ndarray:
        """View as a (height, width, 4) ARGB array."""
        self.validate()
        return self.data.reshape(self.height, self.width, BYTES_PER_PIXEL)

    def to_rgb_array(self) -> np.ndarray:
        """View as a (height, width, 3) RGB array with alpha dropped."""
        return self.to_array()[:, :, RED:]

    def to_argb_words(self) -> np.ndarray:
        """Return the packed 32-bit words as native uint32, row-major."""
        self.validate()
        return self.data.view(ARGB_WORD).astype(np.uint32)

    def pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        """Return (alpha, red, green, blue) of one pixel."""
        a, r, g, b = self.to_array()[y, x]
        return int(a), int(r), int(g), int(b)

    def to_image(self) -> Image.Image:
        """Convert to a Pillow RGBA image."""
        argb = self.to_array()
        rgba = np.concatenate([argb[:, :, RED:], argb[:, :, ALPHA:RED]], axis=2)
        return Image.fromarray(np.ascontiguousarray(rgba))

    def copy(self) -> 'PixelBuffer':
        """Return a buffer that owns its own bytes."""
        return PixelBuffer(self.data.copy(), self.width, self.height)

    @classmethod
    def from_argb_words(cls, words: np.ndarray, width: int, height: int) -> 'PixelBuffer':
        """
        Build a buffer from packed ``(a << 24) | (r << 16) | (g << 8) | b`` words.

        Args:
            words: Integer array of width * height words
            width: Image width
            height: Image height
        """
        packed = np.asarray(words, dtype=np.uint32).reshape(-1).astype(ARGB_WORD)
        return cls(packed.view(np.uint8), width, height)

    @classmethod
    def from_array(cls, array: np.ndarray, alpha: int = 255) -> 'PixelBuffer':
        """
        Build a buffer from an RGB or RGBA image array.

        Args:
            array: (height, width, 3) RGB or (height, width, 4) RGBA uint8 array
            alpha: Alpha used when the array carries no alpha channel

        Raises:
            InvalidInputError: If the array is not an RGB/RGBA image
        """
        array = np.asarray(array)
        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise InvalidInputError(
                f"Expected (H, W, 3) or (H, W, 4) array, got shape {array.shape}",
                details={'shape': array.shape}
            )
        if array.dtype != np.uint8:
            raise InvalidInputError(
                f"Expected uint8 pixel values, got {array.dtype}",
                details={'dtype': str(array.dtype)}
            )

        height, width = array.shape[:2]
        argb = np.empty((height, width, BYTES_PER_PIXEL), dtype=np.uint8)
        argb[:, :, RED:] = array[:, :, :3]
        argb[:, :, ALPHA] = array[:, :, 3] if array.shape[2] == 4 else alpha
        return cls(argb.reshape(-1), width, height)

    @classmethod
    def from_image(cls, image: Image.Image) -> 'PixelBuffer':
        """Build a buffer from a Pillow image of any mode."""
        return cls.from_array(np.asarray(image.convert('RGBA')))

    @classmethod
    def filled(cls, width: int, height: int, rgb: Tuple[int, int, int], alpha: int = 255) -> 'PixelBuffer':
        """Build a uniform buffer of one color."""
        argb = np.empty((height, width, BYTES_PER_PIXEL), dtype=np.uint8)
        argb[:, :, ALPHA] = alpha
        argb[:, :, RED:] = np.asarray(rgb, dtype=np.uint8)
        return cls(argb.reshape(-1), width, height)


def tensor_size_for(target_size: int = TARGET_SIZE) -> int:
    """Number of float32 elements in a [1, 3, size, size] tensor."""
    return NUM_CHANNELS * target_size * target_size


def as_planar_tensor(tensor: Union[np.ndarray, list], target_size: int = TARGET_SIZE) -> np.ndarray:
    """
    Interpret a tensor as (3, size, size) planes.

    Args:
        tensor: Flat or shaped float array of 3 * size * size values
        target_size: Expected square size

    Returns:
        float32 array of shape (3, size, size), a view where possible

    Raises:
        InvalidInputError: If the element count does not match
    """
    flat = np.asarray(tensor, dtype=np.float32).reshape(-1)
    expected = tensor_size_for(target_size)
    if flat.size != expected:
        raise InvalidInputError(
            f"Tensor holds {flat.size} values, expected {expected} "
            f"for [1, {NUM_CHANNELS}, {target_size}, {target_size}]",
            details={'size': int(flat.size), 'expected_size': expected}
        )
    return flat.reshape(NUM_CHANNELS, target_size, target_size)
