"""Detector systems: sub-detectors made of measurement layers, and the cradle holding them."""

from __future__ import annotations

from typing import Iterable, Iterator, List, Optional

from kaltrack.attributes import Element
from kaltrack.measlayer import MeasLayer


class KalDetector(Element):
    """A sub-detector: an ordered collection of measurement layers."""

    def __init__(self, layers: Optional[Iterable[MeasLayer]] = None) -> None:
        super().__init__()
        self._layers: List[MeasLayer] = list(layers) if layers is not None else []

    def append(self, layer: MeasLayer) -> None:
        """Add a measurement layer to this sub-detector."""
        self._layers.append(layer)

    def __iter__(self) -> Iterator[MeasLayer]:
        return iter(self._layers)

    def __len__(self) -> int:
        return len(self._layers)


def _is_sortable(layer: MeasLayer) -> bool:
    return hasattr(layer, "sorting_policy")


class KalDetCradle(Element):
    """The detector system used by the Kalman filter.

    Layers of installed sub-detectors are kept sorted by their
    ``sorting_policy`` (inside to outside) and numbered accordingly.  If any
    layer has no sorting policy, the layers keep the order of installation.
    """

    def __init__(self) -> None:
        super().__init__()
        self._layers: List[MeasLayer] = []
        self.ms_enabled = True
        self.dedx_enabled = True
        self._done = False
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed

    def install(self, detector: KalDetector) -> None:
        """Install the layers of a sub-detector into this cradle.

        Raises RuntimeError if the cradle has been closed.
        """
        if self._closed:
            raise RuntimeError("cradle already closed; reopen it before installing")
        for layer in detector:
            self._layers.append(layer)
            layer.parent = detector
            detector.parent = self
        self._done = False

    def close(self) -> None:
        """Close the cradle against further installation and sort its layers."""
        self._closed = True
        self._update()

    def reopen(self) -> None:
        """Allow further installation."""
        self._closed = False

    def _update(self) -> None:
        """Sort the layers by their sorting policy and number them from inside out."""
        self._done = True
        if self._layers and all(_is_sortable(layer) for layer in self._layers):
            self._layers.sort(key=lambda layer: layer.sorting_policy)
        for index, layer in enumerate(self._layers):
            layer.index = index

    def _ensure_sorted(self) -> None:
        if not self._done:
            self._update()

    def __iter__(self) -> Iterator[MeasLayer]:
        self._ensure_sorted()
        return iter(list(self._layers))

    def __len__(self) -> int:
        return len(self._layers)

    def __getitem__(self, index: int) -> MeasLayer:
        """Return the layer with the given layer index.

        Layer indices run from 0 to len - 1; anything else raises IndexError.
        """
        self._ensure_sorted()
        if not 0 <= index < len(self._layers):
            raise IndexError(f"layer index {index} out of range 0..{len(self._layers) - 1}")
        return self._layers[index]