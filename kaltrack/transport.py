"""Transport of a track state through the layers of a detector cradle.

The track moves from layer to layer between a starting and a target
layer. Along the way it collects the propagator matrix and the process
noise from multiple scattering, and corrects the state for energy loss.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

import numpy as np

from kaltrack.detector import KalDetCradle
from kaltrack.measlayer import PION_MASS, MeasLayer, TrackLike

# Tolerance handed to the crossing-point solver.
CROSSING_EPS = 1.0e-8
# Crossings farther from the start than the target by more than this margin
# are taken to lie on the far side and are skipped [mm].
FAR_SIDE_MARGIN = 1.0


class TransportTrack(TrackLike, Protocol):
    """A track that can be moved from one pivot to another.

    ``state`` holds the track parameters (drho, phi0, kappa, dz, tanl[, t0]).
    ``move_to`` moves the pivot to ``x`` over deflection angle ``fid`` and
    returns the propagator matrix of that step. ``set_state`` replaces the
    parameters at the given pivot.
    """

    state: np.ndarray
    pivot: np.ndarray

    def move_to(self, x: np.ndarray, fid: float) -> np.ndarray: ...

    def set_state(self, sv: np.ndarray, pivot: np.ndarray) -> None: ...

    def calc_dx_dphi(self, phi: float) -> np.ndarray: ...


class Surface(Protocol):
    """What transport needs of a measurement layer's surface.

    ``calc_xing_point_with`` starts from deflection angle ``phi``. It returns
    the crossing point and its deflection angle, or None if the track does
    not cross. A ``mode`` of 0 takes the nearest crossing; +1 or -1 takes the
    crossing forwards or backwards.
    """

    def calc_xing_point_with(
        self, track: TransportTrack, phi: float, mode: int, eps: float
    ) -> Optional[Tuple[np.ndarray, float]]: ...

    def outward_normal(self, x: np.ndarray) -> np.ndarray: ...


@dataclass
class TransportResult:
    """Outcome of a transport: pivot and state at the target, propagator and noise."""

    pivot: np.ndarray
    state: np.ndarray
    propagator: np.ndarray
    noise: np.ndarray


def propagate(F, Q, DF, Qms) -> Tuple[np.ndarray, np.ndarray]:
    """Advance propagator F and noise Q by one step with propagator DF and noise Qms."""
    DF = np.asarray(DF, dtype=float)
    new_f = DF @ np.asarray(F, dtype=float)
    new_q = DF @ (np.asarray(Q, dtype=float) + np.asarray(Qms, dtype=float)) @ DF.T
    return new_f, new_q


def _embed(df, sdim: int) -> np.ndarray:
    df = np.asarray(df, dtype=float)
    out = np.zeros((sdim, sdim))
    n = min(sdim, df.shape[0])
    out[:n, :n] = df[:n, :n]
    if sdim == 6:
        out[5, 5] = 1.0  # t0 is unchanged by transport
    return out


def _position(layers: List[MeasLayer], layer: MeasLayer, role: str) -> int:
    for index, candidate in enumerate(layers):
        if candidate is layer:
            return index
    raise ValueError(f"the {role} layer is not installed in the cradle")


def transport(
    cradle: KalDetCradle,
    from_layer: MeasLayer,
    to_layer: MeasLayer,
    track: TransportTrack,
    mass: float = PION_MASS,
) -> TransportResult:
    """Transport the track from from_layer to to_layer through the cradle.

    The track is moved in place. Multiple scattering and energy loss are
    applied at each layer crossed after the first. These follow the cradle's
    ``ms_enabled`` and ``dedx_enabled`` switches.
    """
    layers = list(cradle)
    fridx = _position(layers, from_layer, "starting")
    toidx = _position(layers, to_layer, "target")
    di = -1 if fridx > toidx else 1

    xfrom = np.array(track.pivot, dtype=float)
    target = to_layer.calc_xing_point_with(track, 0.0, 0, CROSSING_EPS)
    if target is None:
        xto, fito = np.zeros(3), 0.0
    else:
        xto, fito = np.asarray(target[0], dtype=float), float(target[1])

    dxdphi = np.asarray(track.calc_dx_dphi(fito), dtype=float).reshape(-1)[:3]
    normal = np.asarray(to_layer.outward_normal(xto), dtype=float)
    is_out = -fito * float(dxdphi @ normal) < 0
    reach = float(np.linalg.norm(xto - xfrom))

    sdim = int(np.asarray(track.state).size)
    F = np.eye(sdim)
    Q = np.zeros((sdim, sdim))
    fid = 0.0
    ifr = fridx

    for ito in range(fridx, toidx + di, di):
        fid_before = fid
        mode = di if ito != fridx else 0
        crossing = layers[ito].calc_xing_point_with(track, fid, mode, CROSSING_EPS)
        if crossing is None:
            fid = fid_before
            continue
        xx, fid = np.asarray(crossing[0], dtype=float), float(crossing[1])

        if float(np.linalg.norm(xx - xfrom)) - FAR_SIDE_MARGIN > reach:
            fid = fid_before
            continue

        last = layers[ifr]
        if cradle.ms_enabled and ito != fridx:
            qms = last.calc_qms(is_out, track, fid, mass, sdim)
        else:
            qms = np.zeros((sdim, sdim))

        DF = _embed(track.move_to(xx, fid), sdim)
        F, Q = propagate(F, Q, DF, qms)

        if cradle.dedx_enabled and ito != fridx:
            sv = np.array(track.state, dtype=float)
            sv[2] += last.energy_loss(is_out, track, fid, mass)
            track.set_state(sv, np.array(track.pivot, dtype=float))

        ifr = ito
        fid = 0.0

    return TransportResult(
        pivot=np.array(track.pivot, dtype=float),
        state=np.array(track.state, dtype=float),
        propagator=F,
        noise=Q,
    )