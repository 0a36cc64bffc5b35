"""Named gesture slots.

The user names each trained gesture. The name is only used to label the
recognition event: a recognized gesture is reported as {name.lower(): True}.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass
class GestureSlot:
    name: str
    index: int

    def to_dict(self) -> dict:
        return {"name": self.name, "index": self.index}


class GestureCatalog:
    """Ordered list of gesture slots; the active slot labels recognitions."""

    def __init__(self):
        self._slots: list[GestureSlot] = []
        self.active_index = 0

    def add(self, name: str = "") -> GestureSlot:
        slot = GestureSlot(name=name, index=len(self._slots))
        self._slots.append(slot)
        return slot

    def remove(self, index: int):
        """Delete a slot and renumber the ones after it."""
        del self._slots[index]
        for i, slot in enumerate(self._slots):
            slot.index = i
        if self.active_index >= len(self._slots):
            self.active_index = max(0, len(self._slots) - 1)

    def rename(self, index: int, name: str):
        self._slots[index].name = name

    def get(self, index: int) -> Optional[GestureSlot]:
        if 0 <= index < len(self._slots):
            return self._slots[index]
        return None

    def label_for(self, index: Optional[int] = None) -> str:
        """Event label for a slot (the active one by default)."""
        slot = self.get(self.active_index if index is None else index)
        if slot is None:
            return ""
        return str(slot.name).lower()

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._slots]

    def load_from_file(self, path: str | Path):
        with open(path) as f:
            data = json.load(f)

        for entry in data.get("gestures", []):
            self.add(entry.get("name", ""))

    def save_to_file(self, path: str | Path):
        data = {"gestures": [s.to_dict() for s in self._slots]}
        with open(path, "w") as f:
            json.dump(data, f, indent=2)

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self):
        return iter(self._slots)
