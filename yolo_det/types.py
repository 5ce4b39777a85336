from dataclasses import dataclass
from typing import Tuple


@dataclass(frozen=True)
class Detection:
    """
    Single detection in original image pixel space.

    The box is stored as top-left corner plus size, rounded to whole pixels.
    """

    left: int
    top: int
    width: int
    height: int
    class_name: str
    confidence: float
    class_id: int = -1

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def as_xywh(self) -> Tuple[int, int, int, int]:
        return self.left, self.top, self.width, self.height

    def as_xyxy(self) -> Tuple[int, int, int, int]:
        return self.left, self.top, self.right, self.bottom


@dataclass(frozen=True)
class ResizeScale:
    """
    Factor mapping model input coordinates back to the original image.

    Equal to max(orig_width, orig_height) / model_input_size. A single factor
    without an offset is only valid because the letterboxed image sits at the
    top-left corner of the model canvas (see `letterbox_top_left`).
    """

    value: float

    @classmethod
    def for_image(cls, orig_width: int, orig_height: int, input_size: int = 640) -> "ResizeScale":
        if orig_width <= 0 or orig_height <= 0:
            raise ValueError(f"Image size must be positive, got {orig_width}x{orig_height}")
        return cls(max(orig_width, orig_height) / float(input_size))
