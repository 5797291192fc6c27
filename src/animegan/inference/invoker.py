"""
Single point of contact with the inference engine.

Submits the planar tensor under the configured input name and flattens the
engine's output into the same contiguous planar layout. Flattening follows
C order, so the iteration runs batch, channel, row, column from outer to
inner.
"""

import logging
from typing import Optional
import numpy as np

from ..core.data_models import tensor_size_for
from ..core.error_handling import InferenceError, InvalidInputError
from .session import InferenceSession

logger = logging.getLogger(__name__)


def flatten_output(output, expected_size: int, out: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Flatten an engine output into a contiguous float32 planar buffer.

    Args:
        output: ndarray or nested sequences shaped [1, 3, H, W]
        expected_size: Required element count
        out: Optional preallocated float32 buffer of expected_size values

    Returns:
        Flat float32 array

    Raises:
        InferenceError: If the output does not hold expected_size values
    """
    try:
        array = np.asarray(output, dtype=np.float32)
    except (TypeError, ValueError) as e:
        raise InferenceError(f"Model output is not a numeric tensor: {e}") from e

    if array.size != expected_size:
        raise InferenceError(
            f"Model output holds {array.size} values with shape {list(array.shape)}, "
            f"expected {expected_size}",
            details={'output_shape': list(array.shape), 'expected_size': expected_size}
        )

    if out is None:
        return np.ascontiguousarray(array).reshape(-1)

    # reshape(-1) walks C order: batch, channel, row, column
    np.copyto(out.reshape(-1), array.reshape(-1))
    return out


def infer(session: InferenceSession, tensor: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
    """
    Run one inference and return the flat planar output tensor.

    Args:
        session: Open inference session
        tensor: Flat planar float32 input of 3 * size * size values
        out: Optional preallocated float32 buffer for the output

    Returns:
        Flat planar float32 output tensor

    Raises:
        InvalidInputError: If the input tensor has the wrong element count
        InferenceError: If the engine fails; never retried here
    """
    shape = session.config.tensor_shape
    expected_size = tensor_size_for(session.config.target_size)

    tensor = np.asarray(tensor, dtype=np.float32)
    if tensor.size != expected_size:
        raise InvalidInputError(
            f"Input tensor holds {tensor.size} values, expected {expected_size}",
            details={'size': int(tensor.size), 'expected_size': expected_size}
        )
    if out is not None and (out.dtype != np.float32 or out.size != expected_size):
        raise InvalidInputError(
            f"Output tensor must be float32 with {expected_size} values",
            details={'size': int(out.size), 'expected_size': expected_size}
        )

    logger.debug(f"Submitting '{session.config.input_name}' with shape {list(shape)}")
    output = session.run(tensor.reshape(shape))
    return flatten_output(output, expected_size, out)
