from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from ..errors import FormatError

PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available)
    - output_index: if the model returns multiple outputs, select this index
    """

    device: str = "cpu"
    output_index: int = 0


class TorchScriptBackend:
    """
    TorchScript engine for the detection head, loaded with `torch.jit.load`.

    Same contract as the ONNX backend: (1, 3, 640, 640) float32 in, flat
    attribute-major float32 buffer out.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self.device = torch.device(cfg.device)
        self.output_index = cfg.output_index

        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self.model = model

    def infer(self, blob: np.ndarray) -> np.ndarray:
        if blob.ndim != 4 or blob.shape[0] != 1 or blob.shape[1] != 3:
            raise FormatError(f"Expected a (1, 3, H, W) input tensor, got {blob.shape}")
        torch = self._torch
        x = torch.as_tensor(blob, device=self.device).float().contiguous()

        with torch.no_grad():
            y = self.model(x)

        if isinstance(y, (tuple, list)):
            y = y[self.output_index]

        return y.detach().to("cpu").numpy().astype(np.float32, copy=False).reshape(-1)
