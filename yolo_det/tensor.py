"""
Model output layout helpers.

The detection head emits one flat float32 buffer in attribute-major order:
all 8400 center-x values, then all 8400 center-y values, and so on through the
4 box attributes and the 80 class scores. Post-processing wants one row per
candidate object instead.
"""

from __future__ import annotations

import numpy as np

from .errors import PostProcessingError

OBJECT_COUNT = 8400
CLASS_COUNT = 80
BOX_ATTRIBUTES = 4


def decode_output(
    buffer: np.ndarray,
    object_count: int = OBJECT_COUNT,
    class_count: int = CLASS_COUNT,
) -> np.ndarray:
    """
    Transpose an attribute-major output buffer into object-major rows.

    Accepts the flat buffer or any array with the same number of elements
    (e.g. the (1, 84, 8400) array an engine returns). Row `i` of the result is
    candidate `i`: [cx, cy, w, h, score_0 .. score_{C-1}].
    """

    attributes = BOX_ATTRIBUTES + class_count
    flat = np.asarray(buffer, dtype=np.float32).reshape(-1)
    expected = object_count * attributes
    if flat.size != expected:
        raise PostProcessingError(
            f"Expected {expected} output values ({attributes} x {object_count}), got {flat.size}"
        )
    return np.ascontiguousarray(flat.reshape(attributes, object_count).T)


def transpose_rows(rows: np.ndarray) -> np.ndarray:
    """M x N -> N x M. Applying it twice gives back the original arrangement."""
    arr = np.asarray(rows)
    if arr.ndim != 2:
        raise PostProcessingError(f"Expected a 2-D row set, got shape {arr.shape}")
    return np.ascontiguousarray(arr.T)
