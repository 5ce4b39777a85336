"""
YOLO detection post-processing for a fixed single-scale head.

Turns the flat attribute-major output of a 640x640 YOLO detector (84 x 8400
floats) into class-labelled boxes in original image coordinates. Core
functionality depends on NumPy only; OpenCV is needed for letterboxing and
drawing, and the engines (onnxruntime, torch) are imported lazily.
"""

from .errors import FormatError, PostProcessingError, Status, YoloError
from .letterbox import letterbox_top_left, to_input_tensor
from .metadata import load_class_names
from .nms import iou, nms, pairwise_iou
from .postprocess import YoloPostConfig, YoloPostprocessor, filter_detections
from .runtime import YoloDetector, load_detector, resolve_path
from .tensor import decode_output, transpose_rows
from .types import Detection, ResizeScale
from .visualize import draw_detections

__all__ = [
    "Detection",
    "ResizeScale",
    "Status",
    "YoloError",
    "PostProcessingError",
    "FormatError",
    "letterbox_top_left",
    "to_input_tensor",
    "decode_output",
    "transpose_rows",
    "filter_detections",
    "iou",
    "nms",
    "pairwise_iou",
    "YoloPostConfig",
    "YoloPostprocessor",
    "YoloDetector",
    "load_detector",
    "resolve_path",
    "load_class_names",
    "draw_detections",
]
