"""
Index-based axes whose positions carry string tags (and, for channels,
display colours and wavelengths).
"""

from __future__ import annotations

from typing import List, Optional, Sequence, Union

from config import DEFAULT_CHANNEL_AXIS_NAME, DEFAULT_CHANNEL_TAG_FORMAT, DEFAULT_TAG_AXIS_NAME
from core.axis import Axis
from core.events import EventBus


class TaggedAxis(Axis):
    """Index-based axis addressed by unique string tags."""

    def __init__(self, tags: Sequence[str], name: str = DEFAULT_TAG_AXIS_NAME) -> None:
        tags = [str(t) for t in tags]
        if not tags:
            raise ValueError("TaggedAxis requires at least one tag")
        if len(set(tags)) != len(tags):
            raise ValueError(f"Tags must be unique: {tags}")
        super().__init__(len(tags), name=name, is_index_based=True)
        self._tags: List[str] = tags
        self.tag_name_changed = EventBus("tag")

    @property
    def tags(self) -> List[str]:
        return list(self._tags)

    def index_of_tag(self, tag: str) -> int:
        """Position of ``tag`` or -1 when absent."""
        try:
            return self._tags.index(tag)
        except ValueError:
            return -1

    def __getitem__(self, tag: str) -> int:
        return self.index_of_tag(tag)

    @property
    def current_tag(self) -> str:
        return self._tags[self.index]

    @current_tag.setter
    def current_tag(self, tag: str) -> None:
        idx = self.index_of_tag(tag)
        if idx < 0:
            raise KeyError(f"Tag {tag!r} not found on axis '{self.name}'")
        self.index = idx

    def set_tag(self, index: int, tag: str) -> None:
        if index < 0 or index >= self.count:
            raise IndexError(f"Tag index {index} out of range (count={self.count})")
        tag = str(tag)
        old = self._tags[index]
        if tag == old:
            return
        if tag in self._tags:
            raise ValueError(f"Tag {tag!r} already exists on axis '{self.name}'")
        self._tags[index] = tag
        self.tag_name_changed.fire(self, old, tag, detail=index)

    def clone(self) -> "TaggedAxis":
        copy = TaggedAxis(self._tags, name=self.name)
        copy.unit = self.unit
        return copy

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, tags={self._tags!r}, index={self.index})"


class ColorChannel(TaggedAxis):
    """
    Channel axis with an optional ARGB colour and wavelength per channel.

    Colours are packed 32-bit ``0xAARRGGBB`` integers.
    """

    def __init__(self, tags_or_count: Union[int, Sequence[str]], name: str = DEFAULT_CHANNEL_AXIS_NAME) -> None:
        if isinstance(tags_or_count, int):
            if tags_or_count <= 0:
                raise ValueError(f"Channel count must be positive, got {tags_or_count}")
            tags = [DEFAULT_CHANNEL_TAG_FORMAT.format(i) for i in range(tags_or_count)]
        else:
            tags = list(tags_or_count)
        super().__init__(tags, name=name)
        self._colors: Optional[List[int]] = None
        self._wavelengths: Optional[List[float]] = None

    # -- colours --------------------------------------------------------

    @property
    def has_colors(self) -> bool:
        return self._colors is not None

    def assign_colors(self, colors: Sequence[int]) -> None:
        if len(colors) != self.count:
            raise ValueError(f"Expected {self.count} colours, got {len(colors)}")
        self._colors = [int(c) & 0xFFFFFFFF for c in colors]

    def get_color(self, index: int) -> int:
        if self._colors is None:
            raise RuntimeError("Colours have not been assigned")
        return self._colors[index]

    def set_color(self, index: int, argb: int) -> None:
        if self._colors is None:
            raise RuntimeError("Colours have not been assigned")
        self._colors[index] = int(argb) & 0xFFFFFFFF

    # -- wavelengths ----------------------------------------------------

    @property
    def has_wavelengths(self) -> bool:
        return self._wavelengths is not None

    def assign_wavelengths(self, wavelengths: Sequence[float]) -> None:
        if len(wavelengths) != self.count:
            raise ValueError(f"Expected {self.count} wavelengths, got {len(wavelengths)}")
        self._wavelengths = [float(w) for w in wavelengths]

    def get_wavelength(self, index: int) -> float:
        if self._wavelengths is None:
            raise RuntimeError("Wavelengths have not been assigned")
        return self._wavelengths[index]

    def set_wavelength(self, index: int, wavelength: float) -> None:
        if self._wavelengths is None:
            raise RuntimeError("Wavelengths have not been assigned")
        self._wavelengths[index] = float(wavelength)

    def clone(self) -> "ColorChannel":
        copy = ColorChannel(self._tags, name=self.name)
        copy.unit = self.unit
        if self._colors is not None:
            copy._colors = list(self._colors)
        if self._wavelengths is not None:
            copy._wavelengths = list(self._wavelengths)
        return copy


__all__ = ["TaggedAxis", "ColorChannel"]
