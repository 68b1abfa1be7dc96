"""Measurement layers: material description, energy loss and multiple scattering."""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import numpy as np

from kaltrack.attributes import Element

if TYPE_CHECKING:
    from kaltrack.hit import TrackHit

PION_MASS = 0.13957018  # [GeV]
ELECTRON_MASS = 0.510998902e-3  # [GeV]
_BETHE_BLOCH_K = 0.307075e-3  # [GeV cm^2]
_MS_SCALE = 0.0136
_MS_LOG = 0.038


class TrackLike(Protocol):
    """What a layer needs to know about a track to compute material effects."""

    kappa: float
    tan_lambda: float
    rho: float
    momentum: float
    is_in_b: bool


@dataclass(frozen=True)
class Material:
    """A material: atomic mass, atomic number, density [g/cm^3], radiation length [cm]."""

    a: float
    z: float
    density: float
    radiation_length: float
    name: str = ""


def _path_length_cm(track: TrackLike, df: float, cslinv: float) -> float:
    """Path length in cm for a deflection df; track lengths are in mm."""
    if track.is_in_b:
        path = abs(track.rho * df) * cslinv
    else:
        path = abs(df) * cslinv
    return path / 10.0


class MeasLayer(Element, ABC):
    """A measurement layer between an inner and an outer material."""

    def __init__(
        self,
        material_in: Material,
        material_out: Material,
        is_active: bool = True,
        name: str = "TVMeasLayer",
    ) -> None:
        super().__init__()
        self.material_in = material_in
        self.material_out = material_out
        self.is_active = is_active
        self.name = name
        self.index = 0

    def material(self, is_outgoing: bool) -> Material:
        """Return the outer material for an outgoing track, the inner one otherwise."""
        return self.material_out if is_outgoing else self.material_in

    def energy_loss(
        self,
        is_outgoing: bool,
        track: TrackLike,
        df: float,
        mass: float = PION_MASS,
    ) -> float:
        """Energy loss over a deflection df, by the Bethe-Bloch formula.

        For a track in a magnetic field the change of kappa is returned, signed
        according to the direction of travel; for a straight track the energy
        deposit itself [GeV].
        """
        cpa = track.kappa
        tnl21 = 1.0 + track.tan_lambda ** 2
        cslinv = math.sqrt(tnl21)
        in_b = track.is_in_b
        mom2 = tnl21 / (cpa * cpa) if in_b else track.momentum ** 2

        mat = self.material(is_outgoing)
        z, a, density = mat.z, mat.a, mat.density
        excitation = (9.76 * z + 58.8 * z ** -0.19) * 1.0e-9
        plasma = 28.816 * math.sqrt(density * z / a) * 1.0e-9
        bg2 = mom2 / (mass * mass)
        gm2 = 1.0 + bg2
        me_m = ELECTRON_MASS / mass
        x = math.log10(math.sqrt(bg2))
        c0 = -(2.0 * math.log(excitation / plasma) + 1.0)
        coeff = -c0 / 27.0
        if x >= 3.0:
            delta = 4.606 * x + c0
        elif 0.0 <= x < 3.0:
            delta = 4.606 * x + c0 + coeff * (3.0 - x) ** 3
        else:
            delta = 0.0
        tmax = 2.0 * ELECTRON_MASS * bg2 / (1.0 + me_m * (2.0 * math.sqrt(gm2) + me_m))
        dedx = (
            _BETHE_BLOCH_K * z / a * gm2 / bg2
            * (
                0.5 * math.log(2.0 * ELECTRON_MASS * bg2 * tmax / (excitation * excitation))
                - bg2 / gm2
                - 0.5 * delta
            )
        )

        edep = dedx * density * _path_length_cm(track, df, cslinv)
        if not in_b:
            return edep

        cpaa = math.sqrt(tnl21 / (mom2 + edep * (edep + 2.0 * math.sqrt(mom2 + mass * mass))))
        dcpa = abs(cpa) - cpaa
        forward = (cpa > 0 and df < 0) or (cpa <= 0 and df > 0)
        if forward:
            return dcpa if cpa > 0 else -dcpa
        return -dcpa if cpa > 0 else dcpa

    def calc_qms(
        self,
        is_outgoing: bool,
        track: TrackLike,
        df: float,
        mass: float = PION_MASS,
        sdim: int = 6,
    ) -> np.ndarray:
        """Process-noise matrix for multiple scattering, in the thin-layer approximation."""
        if sdim < 5:
            raise ValueError("the state needs at least five parameters")
        cpa = track.kappa
        tnl = track.tan_lambda
        tnl21 = 1.0 + tnl * tnl
        cpatnl = cpa * tnl
        cslinv = math.sqrt(tnl21)
        mom = abs(1.0 / cpa) * cslinv if track.is_in_b else track.momentum
        beta = mom / math.sqrt(mom * mom + mass * mass)

        x0inv = 1.0 / self.material(is_outgoing).radiation_length
        xl = _path_length_cm(track, df, cslinv) * x0inv
        tmp = (1.0 + _MS_LOG * math.log(max(1.0e-4, xl))) / (mom * beta)
        sgms2 = _MS_SCALE * _MS_SCALE * xl * tmp * tmp

        qms = np.zeros((sdim, sdim))
        qms[1, 1] = sgms2 * tnl21
        qms[2, 2] = sgms2 * cpatnl * cpatnl
        qms[2, 4] = sgms2 * cpatnl * tnl21
        qms[4, 2] = sgms2 * cpatnl * tnl21
        qms[4, 4] = sgms2 * tnl21 * tnl21
        return qms

    @abstractmethod
    def xv_to_mv(self, hit: "TrackHit", xv) -> np.ndarray:
        """Convert a global position into a measurement vector for the hit."""

    @abstractmethod
    def hit_to_xv(self, hit: "TrackHit") -> np.ndarray:
        """Convert a hit into a global position."""

    @abstractmethod
    def calc_dh_da(self, hit: "TrackHit", xv, dxphiada) -> np.ndarray:
        """Derivative of the measurement vector with respect to the track parameters."""