from __future__ import annotations

from typing import Iterable, Tuple

import numpy as np

from .errors import FormatError
from .types import Detection

_PALETTE = [
    (255, 56, 56),
    (255, 157, 151),
    (255, 112, 31),
    (255, 178, 29),
    (207, 210, 49),
    (72, 249, 10),
    (146, 204, 23),
    (61, 219, 134),
    (26, 147, 52),
    (0, 212, 187),
    (44, 153, 168),
    (0, 194, 255),
    (52, 69, 147),
    (100, 115, 255),
    (0, 24, 236),
    (132, 56, 255),
    (82, 0, 133),
    (203, 56, 255),
    (255, 149, 200),
    (255, 55, 199),
]


def _color_for_class_id(class_id: int) -> Tuple[int, int, int]:
    """
    Deterministic RGB color for a class id.
    """

    if class_id < 0:
        return (0, 0, 255)
    if class_id < len(_PALETTE):
        return _PALETTE[class_id]

    rng = np.random.default_rng(int(class_id))
    rgb = rng.integers(0, 256, size=3, dtype=np.uint8)
    return int(rgb[0]), int(rgb[1]), int(rgb[2])


def draw_detections(
    image_rgb: np.ndarray,
    detections: Iterable[Detection],
    *,
    show_score: bool = True,
    box_thickness: int = 2,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw bounding boxes + "<class> <confidence>" labels on an RGB image and
    return a copy. Boxes are clipped to the image.
    """

    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for draw_detections(). Install with `pip install opencv-python`.") from e

    if image_rgb is None or not hasattr(image_rgb, "shape"):
        raise FormatError("image_rgb must be a NumPy array (RGB).")
    if image_rgb.ndim != 3 or image_rgb.shape[2] != 3:
        raise FormatError(f"Expected image shape (H, W, 3), got {getattr(image_rgb, 'shape', None)}")

    out = image_rgb.copy()
    h, w = out.shape[:2]

    for det in detections:
        x1, y1, x2, y2 = det.as_xyxy()
        x1i = int(np.clip(x1, 0, w - 1))
        y1i = int(np.clip(y1, 0, h - 1))
        x2i = int(np.clip(x2, 0, w - 1))
        y2i = int(np.clip(y2, 0, h - 1))

        color = _color_for_class_id(det.class_id)
        cv2.rectangle(out, (x1i, y1i), (x2i, y2i), color, thickness=box_thickness)

        label = det.class_name or "object"
        if show_score:
            label = f"{label} {det.confidence:.2f}"

        (tw, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        # Place label above the box if possible, else inside.
        y_text_top = y1i - th - baseline
        if y_text_top < 0:
            y_text_top = y1i

        x_text_right = min(x1i + tw, w - 1)
        y_text_bottom = min(y_text_top + th + baseline, h - 1)

        cv2.rectangle(out, (x1i, y_text_top), (x_text_right, y_text_bottom), color, thickness=-1)
        cv2.putText(
            out,
            label,
            (x1i, min(y_text_top + th, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            (255, 255, 255),
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    return out
