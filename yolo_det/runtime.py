from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import numpy as np

from .letterbox import letterbox_top_left, to_input_tensor
from .postprocess import YoloPostConfig, YoloPostprocessor
from .types import Detection, ResizeScale

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

MODEL_INPUT_SIZE = 640


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", ".git"),
) -> Path:
    """
    Best-effort project root discovery, used to resolve relative model paths.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Absolute paths are returned as-is; relative paths resolve against `root`,
    or against the project root when `root` is "auto"/None.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    scale: ResizeScale


class YoloDetector:
    """
    Per-image detection: letterbox -> engine -> post-process.

    `infer_fn` is the external engine. It receives the (1, 3, 640, 640) float32
    RGB tensor and must return the attribute-major output buffer. The detector
    expects RGB images (H, W, 3) uint8 and returns detections in original image
    coordinates.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], np.ndarray],
        class_names: Sequence[str],
        *,
        backend: Optional[object] = None,
        backend_name: Optional[str] = None,
        post_cfg: YoloPostConfig = YoloPostConfig(),
        input_size: int = MODEL_INPUT_SIZE,
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.backend_name = backend_name
        self.input_size = input_size
        self.post = YoloPostprocessor(post_cfg, class_names)

    @property
    def class_names(self) -> List[str]:
        return self.post.class_names

    def preprocess(self, image_rgb: np.ndarray) -> PreprocessResult:
        canvas, scale = letterbox_top_left(image_rgb, input_size=self.input_size)
        return PreprocessResult(blob=to_input_tensor(canvas), scale=scale)

    def __call__(self, image_rgb: np.ndarray) -> List[Detection]:
        prep = self.preprocess(image_rgb)
        output = self._infer_fn(prep.blob)
        detections = self.post.process(output, prep.scale)
        logger.debug("scale=%.4f detections=%d", prep.scale.value, len(detections))
        return detections


def load_detector(
    model_path: PathLike,
    class_names: Sequence[str],
    *,
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    post_cfg: YoloPostConfig = YoloPostConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    torch_device: str = "cpu",
) -> YoloDetector:
    """
    Create a detector for a model on disk.

    Args:
        model_path: path to the model file; relative paths resolve against the project root by default
        class_names: ordered class list matching the detection head
        backend: "onnxruntime" / "torchscript", or None to infer from the file extension
    """

    resolved = resolve_path(model_path, root=root)
    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    logger.info("Loading %s model %s", chosen, resolved)

    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

        ort_backend = OnnxRuntimeBackend(resolved, OnnxRuntimeBackendConfig(providers=onnx_providers))
        return YoloDetector(
            ort_backend.infer,
            class_names,
            backend=ort_backend,
            backend_name="onnxruntime",
            post_cfg=post_cfg,
        )

    if chosen == "torchscript":
        from .backends.torchscript_backend import TorchScriptBackend, TorchScriptBackendConfig

        ts_backend = TorchScriptBackend(resolved, TorchScriptBackendConfig(device=torch_device))
        return YoloDetector(
            ts_backend.infer,
            class_names,
            backend=ts_backend,
            backend_name="torchscript",
            post_cfg=post_cfg,
        )

    raise ValueError(f"Unsupported backend: {backend!r}")
