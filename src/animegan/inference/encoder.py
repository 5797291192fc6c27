"""
Encoder stage: interleaved ARGB pixels -> planar normalized float tensor.

The tensor layout is [1, 3, size, size] flattened in C order: every red
value first, then every green value, then every blue value.
"""

import logging
from typing import Optional
import numpy as np
from PIL import Image

from ..core.config import TARGET_SIZE, NUM_CHANNELS
from ..core.data_models import PixelBuffer, tensor_size_for
from ..core.error_handling import ConfigurationError, InvalidInputError

logger = logging.getLogger(__name__)

NORMALIZATION_SCALE = np.float32(127.5)
NORMALIZATION_OFFSET = np.float32(1.0)

RESAMPLE_MODES = {
    'bilinear': Image.Resampling.BILINEAR,
    'bicubic': Image.Resampling.BICUBIC,
    'lanczos': Image.Resampling.LANCZOS,
}


def normalize(values) -> np.ndarray:
    """Map 8-bit channel values to ``v / 127.5 - 1.0`` in float32."""
    result = np.asarray(values, dtype=np.float32) / NORMALIZATION_SCALE
    return result - NORMALIZATION_OFFSET


def resize_rgb(rgb: np.ndarray, size: int, resample: str = 'bilinear') -> np.ndarray:
    """
    Stretch an RGB array to size x size. Aspect ratio is not preserved.

    Args:
        rgb: (height, width, 3) uint8 array
        size: Target edge length
        resample: Filter name, one of RESAMPLE_MODES

    Returns:
        (size, size, 3) uint8 array
    """
    if resample not in RESAMPLE_MODES:
        raise ConfigurationError(
            f"Unsupported resample filter '{resample}'",
            details={'resample': resample, 'supported': list(RESAMPLE_MODES)}
        )
    image = Image.fromarray(np.ascontiguousarray(rgb))
    resized = image.resize((size, size), RESAMPLE_MODES[resample])
    return np.asarray(resized)


class PixelEncoder:
    """
    Converts pixel buffers into the tensor layout the model expects.

    Steps: validate, resize to the square target size when needed, drop
    alpha, normalize to [-1, 1], write planar R, G, B.
    """

    def __init__(self, target_size: int = TARGET_SIZE, resample: str = 'bilinear'):
        """
        Initialize encoder.

        Args:
            target_size: Edge length of the square model input
            resample: Resize filter used for non-square or off-size inputs
        """
        if resample not in RESAMPLE_MODES:
            raise ConfigurationError(
                f"Unsupported resample filter '{resample}'",
                details={'resample': resample, 'supported': list(RESAMPLE_MODES)}
            )
        self.target_size = target_size
        self.resample = resample
        self.tensor_size = tensor_size_for(target_size)

    def allocate_tensor(self) -> np.ndarray:
        """Allocate a flat float32 tensor buffer of the right size."""
        return np.empty(self.tensor_size, dtype=np.float32)

    def encode(self, pixels: PixelBuffer, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Encode a pixel buffer into a flat planar tensor.

        Args:
            pixels: Input image of any size
            out: Optional preallocated float32 buffer of tensor_size values,
                filled in place and returned

        Returns:
            Flat float32 tensor of 3 * target_size * target_size values

        Raises:
            InvalidInputError: If the pixel buffer length does not match its
                dimensions or ``out`` has the wrong size
        """
        pixels.validate()
        rgb = pixels.to_rgb_array()

        if pixels.width != self.target_size or pixels.height != self.target_size:
            logger.debug(
                f"Resizing {pixels.width}x{pixels.height} -> "
                f"{self.target_size}x{self.target_size} ({self.resample})"
            )
            rgb = resize_rgb(rgb, self.target_size, self.resample)

        if out is None:
            out = self.allocate_tensor()
        elif out.dtype != np.float32 or out.size != self.tensor_size:
            raise InvalidInputError(
                f"Output tensor must be float32 with {self.tensor_size} values, "
                f"got {out.dtype} with {out.size}",
                details={'size': int(out.size), 'expected_size': self.tensor_size}
            )

        planes = out.reshape(NUM_CHANNELS, self.target_size, self.target_size)
        # HWC -> CHW, then normalize in place in float32
        planes[...] = rgb.transpose(2, 0, 1)
        planes /= NORMALIZATION_SCALE
        planes -= NORMALIZATION_OFFSET
        return out
