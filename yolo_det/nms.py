from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

import numpy as np

from .types import Detection

BoxLike = Union[Detection, Tuple[float, float, float, float]]


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.5

    def __post_init__(self) -> None:
        if not 0.0 < self.iou_threshold <= 1.0:
            raise ValueError(f"iou_threshold must be in (0, 1], got {self.iou_threshold}")


def boxes_to_array(detections: Sequence[Detection]) -> np.ndarray:
    """(N, 4) float64 matrix of [left, top, right, bottom]."""
    if not detections:
        return np.empty((0, 4), dtype=np.float64)
    return np.array([d.as_xyxy() for d in detections], dtype=np.float64)


def pairwise_iou(boxes_a: np.ndarray, boxes_b: np.ndarray) -> np.ndarray:
    """
    IOU of every box in `boxes_a` against every box in `boxes_b`.

    Both inputs are xyxy matrices, shapes (N, 4) and (M, 4); the result is
    (N, M). Intersection width/height are clamped to zero before they are
    multiplied, so disjoint boxes (or boxes touching at an edge or a corner)
    always score 0. A zero-area union scores 0 as well.
    """

    a = np.asarray(boxes_a, dtype=np.float64).reshape(-1, 4)
    b = np.asarray(boxes_b, dtype=np.float64).reshape(-1, 4)

    area_a = (a[:, 2] - a[:, 0]) * (a[:, 3] - a[:, 1])
    area_b = (b[:, 2] - b[:, 0]) * (b[:, 3] - b[:, 1])

    top_left = np.maximum(a[:, None, :2], b[None, :, :2])
    bottom_right = np.minimum(a[:, None, 2:], b[None, :, 2:])
    wh = np.maximum(bottom_right - top_left, 0.0)
    inter = wh[..., 0] * wh[..., 1]

    union = area_a[:, None] + area_b[None, :] - inter
    return np.divide(inter, union, out=np.zeros_like(inter), where=union > 0)


def _as_xywh(box: BoxLike) -> Tuple[float, float, float, float]:
    if isinstance(box, Detection):
        return box.as_xywh()
    left, top, width, height = box
    return left, top, width, height


def iou(box_a: BoxLike, box_b: BoxLike) -> float:
    """Scalar IOU of two (left, top, width, height) rectangles."""
    ax, ay, aw, ah = _as_xywh(box_a)
    bx, by, bw, bh = _as_xywh(box_b)

    inter_w = max(0.0, min(ax + aw, bx + bw) - max(ax, bx))
    inter_h = max(0.0, min(ay + ah, by + bh) - max(ay, by))
    inter = inter_w * inter_h
    union = aw * ah + bw * bh - inter
    if union <= 0:
        return 0.0
    return float(inter / union)


def suppression_keep_mask(ious: np.ndarray, labels: Sequence[str], iou_threshold: float) -> np.ndarray:
    """
    Keep mask for boxes already sorted by confidence, highest first.

    Every pair (i, j) with i < j, the same label and IOU above the threshold
    removes j. All pairs are checked against the full matrix; a box that was
    removed still removes the boxes ranked below it.
    """

    labels_arr = np.asarray(list(labels))
    same_class = labels_arr[:, None] == labels_arr[None, :]
    overlaps = np.triu(np.asarray(ious) > iou_threshold, k=1) & same_class
    return ~overlaps.any(axis=0)


def nms(detections: Sequence[Detection], iou_threshold: float) -> List[Detection]:
    """
    Per-class non-maximum suppression.

    Returns the kept detections ordered by confidence (ties keep their input
    order). Applying it again to its own output changes nothing.
    """

    cfg = NMSConfig(iou_threshold=iou_threshold)
    if not detections:
        return []

    # sorted() is stable: equal confidences keep their relative order.
    ranked = sorted(detections, key=lambda d: d.confidence, reverse=True)
    boxes = boxes_to_array(ranked)
    ious = pairwise_iou(boxes, boxes)

    keep = suppression_keep_mask(ious, [d.class_name for d in ranked], cfg.iou_threshold)
    return [det for det, kept in zip(ranked, keep) if kept]
