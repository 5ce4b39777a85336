from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Union


def _parse_names_mapping(lines: List[str]) -> Dict[int, str]:
    names: Dict[int, str] = {}
    in_names = False
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line == "names:":
            in_names = True
            continue
        if not in_names:
            continue

        # Parse "id: label"
        if ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        right = right.strip().strip("'").strip('"')
        if not left.isdigit():
            continue
        names[int(left)] = right
    return names


def load_class_names(path: Union[str, Path]) -> List[str]:
    """
    Load the ordered class list for the detection head.

    Two formats are accepted:

    - a plain text file with one class name per line (blank lines ignored),
    - the lightweight metadata.yaml mapping exported next to YOLO models:

        names:
          0: person
          1: bicycle
          ...

    The returned list is indexed by class id.
    """

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Class list not found: {p}")
    lines = p.read_text(encoding="utf-8").splitlines()

    if any(line.strip() == "names:" for line in lines):
        mapping = _parse_names_mapping(lines)
        if not mapping:
            raise ValueError(f"No class names found under 'names:' in {p}")
        expected = list(range(len(mapping)))
        if sorted(mapping) != expected:
            raise ValueError(f"Class ids in {p} must be contiguous from 0, got {sorted(mapping)}")
        return [mapping[i] for i in expected]

    names = [line.strip() for line in lines if line.strip()]
    if not names:
        raise ValueError(f"Class list is empty: {p}")
    return names
