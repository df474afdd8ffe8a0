"""Structured helpers for representing selections over the node tree."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

Path = tuple[int, ...]


@dataclass(slots=True, frozen=True)
class Point:
    """A caret position: a leaf-block path plus an offset into its text."""

    path: Path
    offset: int = 0

    def __post_init__(self) -> None:
        path = self._coerce_path(self.path)
        try:
            offset = int(self.offset)
        except (TypeError, ValueError) as exc:
            raise ValueError("Point offset must be an integer") from exc
        object.__setattr__(self, "path", path)
        object.__setattr__(self, "offset", max(0, offset))

    @staticmethod
    def _coerce_path(value: Any) -> Path:
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            raise ValueError("Point path must be a sequence of indexes")
        try:
            path = tuple(int(index) for index in value)
        except (TypeError, ValueError) as exc:
            raise ValueError("Point path entries must be integers") from exc
        if not path or any(index < 0 for index in path):
            raise ValueError("Point path must be non-empty and non-negative")
        return path

    def sort_key(self) -> tuple[Path, int]:
        return (self.path, self.offset)

    def is_before(self, other: Point) -> bool:
        return self.sort_key() < other.sort_key()

    def move_to(self, offset: int) -> Point:
        """Return a point in the same block at ``offset``."""

        return Point(self.path, offset)

    def to_dict(self) -> dict[str, Any]:
        return {"path": list(self.path), "offset": self.offset}

    @classmethod
    def from_value(cls, value: Any) -> Point:
        """Coerce ``value`` into a :class:`Point`."""

        if isinstance(value, Point):
            return value
        if isinstance(value, Mapping):
            if "path" not in value:
                raise ValueError("Point mappings require a path key")
            return cls(value["path"], value.get("offset", 0))
        if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
            seq = list(value)
            if len(seq) != 2:
                raise ValueError("Point sequences must be (path, offset) pairs")
            return cls(seq[0], seq[1])
        raise TypeError("Unsupported Point input")


@dataclass(slots=True, frozen=True)
class Selection:
    """Anchor/focus range over the document; may be collapsed or blurred."""

    anchor: Point
    focus: Point
    is_focused: bool = False

    @property
    def is_collapsed(self) -> bool:
        """Return ``True`` when the range collapses to a caret."""

        return self.anchor == self.focus

    @property
    def is_expanded(self) -> bool:
        return not self.is_collapsed

    @property
    def is_blurred(self) -> bool:
        return not self.is_focused

    @property
    def is_backward(self) -> bool:
        return self.focus.is_before(self.anchor)

    @property
    def start(self) -> Point:
        return self.focus if self.is_backward else self.anchor

    @property
    def end(self) -> Point:
        return self.anchor if self.is_backward else self.focus

    def collapse_to_start(self) -> Selection:
        return replace(self, anchor=self.start, focus=self.start)

    def collapse_to_end(self) -> Selection:
        return replace(self, anchor=self.end, focus=self.end)

    def focused(self) -> Selection:
        return self if self.is_focused else replace(self, is_focused=True)

    def blurred(self) -> Selection:
        return self if not self.is_focused else replace(self, is_focused=False)

    def to_dict(self) -> dict[str, Any]:
        """Return the selection as a JSON-friendly mapping."""

        return {
            "anchor": self.anchor.to_dict(),
            "focus": self.focus.to_dict(),
            "is_focused": self.is_focused,
        }

    @classmethod
    def caret(cls, path: Sequence[int], offset: int = 0, *, is_focused: bool = False) -> Selection:
        """Return a collapsed selection at ``path``/``offset``."""

        point = Point(tuple(path), offset)
        return cls(anchor=point, focus=point, is_focused=is_focused)

    @classmethod
    def from_value(cls, value: Any) -> Selection:
        """Coerce ``value`` into a :class:`Selection`."""

        if isinstance(value, Selection):
            return value
        if isinstance(value, Mapping):
            anchor = value.get("anchor")
            focus = value.get("focus", anchor)
            if anchor is None:
                raise ValueError("Selection mappings require an anchor")
            return cls(
                anchor=Point.from_value(anchor),
                focus=Point.from_value(focus),
                is_focused=bool(value.get("is_focused", False)),
            )
        raise TypeError("Unsupported Selection input")

    @classmethod
    def zero(cls) -> Selection:
        """Return a blurred caret at offset 0 of the first block."""

        return cls.caret((0,), 0)


__all__ = ["Path", "Point", "Selection"]
