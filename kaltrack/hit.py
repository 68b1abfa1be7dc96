"""Track hits: measured coordinates and their errors on a measurement layer."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

if TYPE_CHECKING:
    from kaltrack.measlayer import MeasLayer

MDIM = 2  # default dimension of a measurement
SDIM = 6  # dimension of the track state: drho, phi0, kappa, dz, tanl, t0

DEFAULT_BFIELD = 30.0


class TrackHit(ABC):
    """A single hit: measured coordinates x with errors dx on a layer."""

    def __init__(
        self,
        meas_layer: Optional["MeasLayer"] = None,
        x: Optional[Sequence[float]] = None,
        dx: Optional[Sequence[float]] = None,
        bfield: float = DEFAULT_BFIELD,
    ) -> None:
        x_arr = np.zeros(MDIM) if x is None else np.array(x, dtype=float).reshape(-1)
        dx_arr = np.zeros(x_arr.size) if dx is None else np.array(dx, dtype=float).reshape(-1)
        if x_arr.size != dx_arr.size:
            raise ValueError(
                f"coordinates and errors differ in length: {x_arr.size} != {dx_arr.size}"
            )
        x_arr.setflags(write=False)
        dx_arr.setflags(write=False)
        self.meas_layer = meas_layer
        self.x = x_arr
        self.dx = dx_arr
        self.bfield = float(bfield)

    @property
    def dimension(self) -> int:
        """Number of measured coordinates."""
        return int(self.x.size)

    @abstractmethod
    def xv_to_mv(self, xv, t0: float) -> np.ndarray:
        """Convert a global position (and time offset) into a measurement vector."""