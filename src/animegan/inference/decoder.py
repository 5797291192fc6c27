"""
Decoder stage: planar float tensor -> interleaved ARGB pixels.

Each output word is ``(255 << 24) | (x << 16) | (y << 8) | z`` where x, y
and z are the denormalized tensor planes picked by the channel order.
"""

import logging
from typing import Optional
import numpy as np

from ..core.config import TARGET_SIZE, NUM_CHANNELS
from ..core.data_models import (
    PixelBuffer, as_planar_tensor, BYTES_PER_PIXEL, ALPHA, RED, GREEN, BLUE
)
from ..core.error_handling import ConfigurationError, InvalidInputError

logger = logging.getLogger(__name__)

# Plane index written into the (red, green, blue) bytes of each word.
CHANNEL_ORDERS = {
    # (alpha << 24) | (plane 3 << 16) | (plane 1 << 8) | plane 2
    'swapped': (2, 0, 1),
    # (alpha << 24) | (plane 3 << 16) | (plane 2 << 8) | plane 1
    'bgr': (2, 1, 0),
    # (alpha << 24) | (plane 1 << 16) | (plane 2 << 8) | plane 3
    'rgb': (0, 1, 2),
}

OPAQUE_ALPHA = 255


def denormalize(values, out: Optional[np.ndarray] = None,
                scratch: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Map normalized values to 8-bit channels.

    Computes ``round((v + 1.0) * 127.5)`` with halves rounded up and clamps to
    [0, 255]. NaN maps to 0.

    Args:
        values: Float values of any shape
        out: Optional uint8 array of the same shape receiving the result
        scratch: Optional float32 array of the same shape used as working
            space; its contents are overwritten
    """
    values = np.asarray(values, dtype=np.float32)
    if scratch is None:
        scratch = np.empty(values.shape, dtype=np.float32)

    np.add(values, np.float32(1.0), out=scratch)
    np.multiply(scratch, np.float32(127.5), out=scratch)
    np.add(scratch, np.float32(0.5), out=scratch)
    np.floor(scratch, out=scratch)
    np.nan_to_num(scratch, copy=False, nan=0.0, posinf=255.0, neginf=0.0)
    np.clip(scratch, 0, 255, out=scratch)

    if out is None:
        return scratch.astype(np.uint8)
    np.copyto(out, scratch, casting='unsafe')
    return out


class PixelDecoder:
    """
    Converts model output tensors into displayable pixel buffers.

    The output is always target_size x target_size with opaque alpha.
    """

    def __init__(self, target_size: int = TARGET_SIZE, channel_order: str = 'swapped'):
        """
        Initialize decoder.

        Args:
            target_size: Edge length of the square model output
            channel_order: Key of CHANNEL_ORDERS selecting which plane lands
                in which byte of the packed word
        """
        if channel_order not in CHANNEL_ORDERS:
            raise ConfigurationError(
                f"Unsupported channel order '{channel_order}'",
                details={'channel_order': channel_order, 'supported': list(CHANNEL_ORDERS)}
            )
        self.target_size = target_size
        self.channel_order = channel_order
        self.plane_map = CHANNEL_ORDERS[channel_order]
        self.output_nbytes = target_size * target_size * BYTES_PER_PIXEL

        # Reused across calls
        self._channels = np.empty((NUM_CHANNELS, target_size, target_size), dtype=np.uint8)
        self._scratch = np.empty((NUM_CHANNELS, target_size, target_size), dtype=np.float32)

    def allocate_output(self) -> np.ndarray:
        """Allocate a flat uint8 pixel buffer of the right size."""
        return np.empty(self.output_nbytes, dtype=np.uint8)

    def decode(self, tensor, out: Optional[np.ndarray] = None) -> PixelBuffer:
        """
        Decode a flat planar tensor into a pixel buffer.

        Args:
            tensor: 3 * target_size * target_size float values, planar
            out: Optional preallocated uint8 buffer of output_nbytes bytes,
                filled in place and wrapped by the returned PixelBuffer

        Returns:
            target_size x target_size PixelBuffer

        Raises:
            InvalidInputError: If the tensor or ``out`` has the wrong size
        """
        planes = as_planar_tensor(tensor, self.target_size)

        if out is None:
            out = self.allocate_output()
        elif out.dtype != np.uint8 or out.size != self.output_nbytes:
            raise InvalidInputError(
                f"Output buffer must be uint8 with {self.output_nbytes} bytes, "
                f"got {out.dtype} with {out.size}",
                details={'size': int(out.size), 'expected_size': self.output_nbytes}
            )

        denormalize(planes, out=self._channels, scratch=self._scratch)

        argb = out.reshape(self.target_size, self.target_size, BYTES_PER_PIXEL)
        argb[:, :, ALPHA] = OPAQUE_ALPHA
        for byte_offset, plane in zip((RED, GREEN, BLUE), self.plane_map):
            argb[:, :, byte_offset] = self._channels[plane]

        return PixelBuffer(out, self.target_size, self.target_size)
