from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .errors import PostProcessingError
from .nms import nms
from .tensor import BOX_ATTRIBUTES, CLASS_COUNT, OBJECT_COUNT, decode_output
from .types import Detection, ResizeScale


@dataclass(frozen=True)
class YoloPostConfig:
    """
    Configuration for YOLO post-processing.
    """

    conf_threshold: float = 0.5
    iou_threshold: float = 0.5
    # If False, skip NMS and return every detection above the threshold.
    apply_nms: bool = True
    object_count: int = OBJECT_COUNT
    class_count: int = CLASS_COUNT

    def __post_init__(self) -> None:
        if not 0.0 < self.conf_threshold <= 1.0:
            raise ValueError(f"conf_threshold must be in (0, 1], got {self.conf_threshold}")
        if not 0.0 < self.iou_threshold <= 1.0:
            raise ValueError(f"iou_threshold must be in (0, 1], got {self.iou_threshold}")
        if self.object_count <= 0 or self.class_count <= 0:
            raise ValueError("object_count and class_count must be > 0")


def _round_half_away(values: np.ndarray) -> np.ndarray:
    return np.sign(values) * np.floor(np.abs(values) + 0.5)


def filter_detections(
    rows: np.ndarray,
    conf_threshold: float,
    class_names: Sequence[str],
    scale: ResizeScale,
) -> List[Detection]:
    """
    Confidence filter + box decode for object-major rows.

    Each row is [cx, cy, w, h, score_0 .. score_{C-1}] in model input pixels.
    The best class is the first index holding the row's maximum score; rows
    whose maximum is below `conf_threshold` are dropped. Kept boxes are
    converted to top-left form, scaled back to the original image and rounded
    to whole pixels. Output keeps the input row order.
    """

    if not 0.0 < conf_threshold <= 1.0:
        raise ValueError(f"conf_threshold must be in (0, 1], got {conf_threshold}")

    r = np.asarray(rows, dtype=np.float32)
    if r.ndim != 2:
        raise PostProcessingError(f"Expected (N, 4 + C) rows, got shape {r.shape}")
    class_scores = r[:, BOX_ATTRIBUTES:]
    if class_scores.shape[1] != len(class_names) or class_scores.shape[1] == 0:
        raise PostProcessingError(
            f"Rows carry {class_scores.shape[1]} class scores but {len(class_names)} class names were given"
        )

    # argmax returns the first index on ties.
    class_ids = np.argmax(class_scores, axis=1)
    scores = class_scores[np.arange(r.shape[0]), class_ids]
    keep = scores >= conf_threshold
    if not np.any(keep):
        return []

    kept = r[keep]
    cx, cy, w, h = kept[:, 0], kept[:, 1], kept[:, 2], kept[:, 3]
    xywh = np.stack([cx - 0.5 * w, cy - 0.5 * h, w, h], axis=1).astype(np.float64)
    xywh = _round_half_away(xywh * scale.value).astype(np.int64)

    return [
        Detection(
            left=int(x),
            top=int(y),
            width=int(bw),
            height=int(bh),
            class_name=str(class_names[int(cls_id)]),
            confidence=float(score),
            class_id=int(cls_id),
        )
        for (x, y, bw, bh), score, cls_id in zip(xywh, scores[keep], class_ids[keep])
    ]


class YoloPostprocessor:
    """
    Post-process for a single-scale YOLO detection head:

    flat attribute-major output -> object-major rows -> confidence filter and
    box decode -> per-class NMS.
    """

    def __init__(self, cfg: YoloPostConfig, class_names: Sequence[str]):
        if len(class_names) != cfg.class_count:
            raise ValueError(f"Expected {cfg.class_count} class names, got {len(class_names)}")
        self.cfg = cfg
        self.class_names = list(class_names)

    def process(self, output: np.ndarray, scale: ResizeScale) -> List[Detection]:
        rows = decode_output(output, object_count=self.cfg.object_count, class_count=self.cfg.class_count)
        detections = filter_detections(rows, self.cfg.conf_threshold, self.class_names, scale)
        if not detections or not self.cfg.apply_nms:
            return detections
        return nms(detections, self.cfg.iou_threshold)
