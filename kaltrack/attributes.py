"""Mix-in attributes: hierarchy membership, locking and drawing."""

from __future__ import annotations

import itertools
from typing import Optional

# Colours handed out to draw() calls that do not choose one: 1, 2, ..., 9, 0, 1, ...
_color_cycle = itertools.cycle((*range(1, 10), 0))


class Element:
    """An object that may belong to a parent object."""

    parent: Optional["Element"] = None

    def __init__(self, parent: Optional["Element"] = None) -> None:
        self.parent = parent

    def find_parent(self, recursive: bool = True) -> "Element":
        """Return the parent, the outermost ancestor if recursive, or self if none."""
        if self.parent is None:
            return self
        if recursive:
            return self.parent.find_parent(recursive)
        return self.parent


class Lockable:
    """An object that can be locked and unlocked."""

    _locked: bool = False

    @property
    def is_locked(self) -> bool:
        return self._locked

    def lock(self) -> None:
        self._locked = True

    def unlock(self) -> None:
        self._locked = False


class Drawable:
    """An object that can be drawn; subclasses supply the rendering."""

    def draw(self, color: Optional[int] = None, opt: str = "") -> int:
        """Draw with the given colour, or the next one in a shared cycle of ten.

        Returns the colour used.
        """
        if color is None:
            color = next(_color_cycle)
        self._render(color, opt)
        return color

    def _render(self, color: int, opt: str) -> None:
        """Render the object; the base class draws nothing."""