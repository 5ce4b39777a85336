"""
Optional inference engines for yolo_det.

Engines live in a separate module so post-processing stays importable without
onnxruntime or torch installed.
"""

from __future__ import annotations

__all__ = []
