from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping

DEFAULT_LABEL_FALLBACK = "Building {class_id}"


@dataclass(frozen=True)
class ClassLabels:
    """
    Lookup table class_id -> human-readable name.

    Ids without an entry render through `fallback`, a format string receiving `class_id`.
    """

    names: Mapping[int, str] = field(default_factory=dict)
    fallback: str = DEFAULT_LABEL_FALLBACK

    def __getitem__(self, class_id: int) -> str:
        return self.name(class_id)

    def name(self, class_id: int) -> str:
        label = self.names.get(int(class_id))
        if label is not None:
            return label
        return self.fallback.format(class_id=class_id)


def load_class_names(metadata_path: str) -> Dict[int, str]:
    """
    Read class names from a model `metadata.yaml`, as written by Ultralytics exports:

        names:
          0: Hudson Yards - The Edge
          1: Empire State Building
          2: WTC

    Only the `names:` block is parsed, so PyYAML is not needed.
    """

    names: Dict[int, str] = {}
    in_names = False

    with open(metadata_path, "r", encoding="utf-8") as f:
        for raw in f:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line == "names:":
                in_names = True
                continue
            if not in_names:
                continue
            # another top-level key ends the block
            if not raw[:1].isspace():
                break

            left, sep, right = line.partition(":")
            left = left.strip()
            if not sep or not left.isdigit():
                continue
            names[int(left)] = right.strip().strip("'").strip('"')

    return names
