"""
Rational timestamp helpers.

Codecs and containers count time in ticks of their own time base (a rational
number of seconds). Timestamps must be rescaled whenever they move from one
clock to another, e.g. from the encoder to the output stream.
"""

from __future__ import annotations

import math
from fractions import Fraction
from typing import Optional, Tuple, Union

Rational = Union[Fraction, int]

DEFAULT_FRAME_RATE = Fraction(30, 1)


def _round_half_away(value: Fraction) -> int:
    if value >= 0:
        return math.floor(value + Fraction(1, 2))
    return -math.floor(-value + Fraction(1, 2))


def rescale(ticks: Optional[int], src: Rational, dst: Rational) -> Optional[int]:
    """Convert `ticks` counted in `src` time base into `dst` time base (rounded to nearest)."""
    if ticks is None:
        return None
    return _round_half_away(Fraction(ticks) * Fraction(src) / Fraction(dst))


def resolve_frame_rate(frame_rate: Optional[Rational]) -> Tuple[Fraction, bool]:
    """
    Returns (rate, defaulted). Unknown or non-positive rates fall back to 30 fps.
    """
    if frame_rate is None or Fraction(frame_rate) <= 0:
        return DEFAULT_FRAME_RATE, True
    return Fraction(frame_rate), False


def frame_duration(frame_rate: Rational) -> Fraction:
    """Length of one frame in seconds."""
    return 1 / Fraction(frame_rate)


def frame_pts(index: int, frame_rate: Rational, time_base: Rational) -> int:
    """Presentation timestamp of frame `index` at a fixed rate, in `time_base` ticks."""
    seconds = index * frame_duration(frame_rate)
    return _round_half_away(seconds / Fraction(time_base))
