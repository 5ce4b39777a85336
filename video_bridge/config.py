from __future__ import annotations

import argparse
import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

HOST_KINDS = ("inprocess", "subprocess")
BACKENDS = ("onnxruntime", "torchscript")


@dataclass(frozen=True)
class VideoJobConfig:
    """
    One video inference job.

    - model/classes: model file and class list (newline list or data.yaml)
    - input/output: source video and destination file
    - backend: engine, or None to pick from the model file extension
    - host: "inprocess" keeps decoded frames in this process, "subprocess" in a child
    """

    model: Optional[str] = None
    classes: Optional[str] = None
    input: Optional[str] = None
    output: Optional[str] = None
    conf_threshold: float = 0.5
    iou_threshold: float = 0.5
    draw_boxes: bool = True
    log_level: int = 3
    backend: Optional[str] = None
    host: str = "inprocess"
    codec_name: str = "h264"
    onnx_providers: Optional[List[str]] = None

    def __post_init__(self) -> None:
        if not (0.0 < self.conf_threshold <= 1.0):
            raise ValueError("conf_threshold must be in (0, 1]")
        if not (0.0 < self.iou_threshold <= 1.0):
            raise ValueError("iou_threshold must be in (0, 1]")
        if not (0 <= self.log_level <= 5):
            raise ValueError("log_level must be in [0, 5]")
        if self.host not in HOST_KINDS:
            raise ValueError(f"host must be one of {list(HOST_KINDS)}")
        if self.backend is not None and self.backend not in BACKENDS:
            raise ValueError(f"backend must be one of {list(BACKENDS)} or null")
        if not self.codec_name:
            raise ValueError("codec_name must be a non-empty string")

    def missing_required(self) -> List[str]:
        return [key for key in ("model", "classes", "input", "output") if not getattr(self, key)]


_STR_KEYS = {"model", "classes", "input", "output", "backend", "host", "codec_name"}
_FLOAT_KEYS = {"conf_threshold", "iou_threshold"}
_INT_KEYS = {"log_level"}
_BOOL_KEYS = {"draw_boxes"}


def _coerce_str_list(value: object, key: str) -> List[str]:
    if isinstance(value, str):
        value = value.split(",")
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        cleaned = [item.strip() for item in value]
        if not cleaned or any(not item for item in cleaned):
            raise ValueError(f"{key} must not contain empty strings")
        return cleaned
    raise ValueError(f"{key} must be a string or list of strings")


def _coerce(key: str, value: object) -> object:
    if key in _STR_KEYS:
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"{key} must be a non-empty string")
        return value.strip()
    if key in _BOOL_KEYS:
        if not isinstance(value, bool):
            raise ValueError(f"{key} must be a boolean")
        return value
    if key in _INT_KEYS:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{key} must be an integer")
        if isinstance(value, float) and not value.is_integer():
            raise ValueError(f"{key} must be an integer")
        return int(value)
    if key in _FLOAT_KEYS:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{key} must be a number")
        return float(value)
    if key == "onnx_providers":
        return _coerce_str_list(value, key)
    raise ValueError(f"Unsupported job config key: {key}")


def job_config_from_dict(payload: Dict[str, object], base: Optional[VideoJobConfig] = None) -> VideoJobConfig:
    allowed = {f.name for f in fields(VideoJobConfig)}
    unknown = sorted(k for k in payload.keys() if k not in allowed)
    if unknown:
        raise ValueError(f"Unknown job config keys: {unknown}")

    values = {key: _coerce(key, value) for key, value in payload.items() if value is not None}
    return replace(base if base is not None else VideoJobConfig(), **values)


def load_job_config(path: Path) -> VideoJobConfig:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Job config not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid job config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Job config must be a JSON object")
    return job_config_from_dict(payload)


def collect_cli_dests(parser: argparse.ArgumentParser, argv: Sequence[str]) -> Set[str]:
    """Destinations of the options actually given on the command line."""
    dests: Set[str] = set()
    for opt, action in parser._option_string_actions.items():
        for arg in argv:
            if arg == opt or arg.startswith(f"{opt}="):
                dests.add(action.dest)
                break
    return dests


def apply_cli_overrides(
    config: VideoJobConfig,
    args: argparse.Namespace,
    cli_dests: Set[str],
) -> VideoJobConfig:
    """Values given explicitly on the command line win over the file."""
    allowed = {f.name for f in fields(VideoJobConfig)}
    overrides = {dest: getattr(args, dest) for dest in cli_dests if dest in allowed}
    return job_config_from_dict(overrides, base=config)
