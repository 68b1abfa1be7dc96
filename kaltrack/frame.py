"""Local track frames for tracking in a non-uniform magnetic field.

A frame is defined so that its local z axis points along the magnetic
field at its origin.  It transforms positions, field vectors and helix
state vectors between the global frame, the previous local frame and
itself.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

_ZERO_DIST_LIMIT = 1.0e-5
_TWO_PI = 2.0 * math.pi


class TransformType(Enum):
    """Direction of a frame transformation."""

    LOCAL_TO_LOCAL = 0
    LOCAL_TO_GLOBAL = 1
    GLOBAL_TO_LOCAL = 2


def _rot_y(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


def _rot_z(angle: float) -> np.ndarray:
    c, s = math.cos(angle), math.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def _wrap_phi(phi: float) -> float:
    while phi < 0.0:
        phi += _TWO_PI
    while phi > _TWO_PI:
        phi -= _TWO_PI
    return phi


def _theta_phi(v: np.ndarray) -> tuple[float, float]:
    x, y, z = (float(c) for c in v)
    theta = 0.0 if x == 0 and y == 0 and z == 0 else math.atan2(math.hypot(x, y), z)
    phi = 0.0 if x == 0 and y == 0 else math.atan2(y, x)
    return theta, phi


def _as_vector(v) -> np.ndarray:
    arr = np.asarray(v, dtype=float).reshape(-1)
    if arr.shape != (3,):
        raise ValueError(f"expected a 3-vector, got shape {arr.shape}")
    return arr


def _as_rotation(m) -> np.ndarray:
    arr = np.asarray(m, dtype=float)
    if arr.shape != (3, 3):
        raise ValueError(f"expected a 3x3 rotation, got shape {arr.shape}")
    return arr


def _dtr_dt(rot: np.ndarray) -> np.ndarray:
    out = np.zeros((6, 6))
    out[:3, :3] = rot
    out[3:, 3:] = rot
    return out


def _dt_dap_full(sv: np.ndarray, cpasign: float) -> np.ndarray:
    dr, phi0, cpa, tanl = sv[0], sv[1], sv[2], sv[4]
    s, c = math.sin(phi0), math.cos(phi0)
    cpa2, acpa = cpa * cpa, abs(cpa)
    out = np.zeros((6, 5))
    out[0, 1] = -c / acpa
    out[0, 2] = cpasign / cpa2 * s
    out[1, 1] = -s / acpa
    out[1, 2] = -cpasign / cpa2 * c
    out[2, 2] = -cpasign / cpa2 * tanl
    out[2, 4] = 1.0 / acpa
    out[3, 0] = c
    out[3, 1] = -dr * s
    out[4, 0] = s
    out[4, 1] = dr * c
    out[5, 3] = 1.0
    return out


def _dt_dap_momentum(sv: np.ndarray, cpasign: float) -> np.ndarray:
    phi0, cpa, tanl = sv[1], sv[2], sv[4]
    s, c = math.sin(phi0), math.cos(phi0)
    cpa2, acpa = cpa * cpa, abs(cpa)
    out = np.zeros((3, 3))
    out[0, 0] = -c / acpa
    out[0, 1] = cpasign / cpa2 * s
    out[1, 0] = -s / acpa
    out[1, 1] = -cpasign / cpa2 * c
    out[2, 1] = -cpasign / cpa2 * tanl
    out[2, 2] = 1.0 / acpa
    return out


def _dapp_dtr_full(tr: np.ndarray, drhosign: float, cpasign: float) -> np.ndarray:
    px, py, pz, dx, dy = tr[0], tr[1], tr[2], tr[3], tr[4]
    dr2 = dx * dx + dy * dy
    dr = math.sqrt(dr2)
    pt = math.hypot(px, py)
    pt3 = pt ** 3
    out = np.zeros((5, 6))
    if dr != 0.0:
        out[0, 3] = drhosign * dx / dr
        out[0, 4] = drhosign * dy / dr
    if dr2 != 0.0:
        out[1, 3] = -dy / dr2
        out[1, 4] = dx / dr2
    out[2, 0] = -cpasign * px / pt3
    out[2, 1] = -cpasign * py / pt3
    out[3, 5] = 1.0
    out[4, 0] = -px * pz / pt3
    out[4, 1] = -py * pz / pt3
    out[4, 2] = 1.0 / pt
    return out


def _dapp_dtr_momentum(tr: np.ndarray, cpasign: float) -> np.ndarray:
    px, py, pz = tr[0], tr[1], tr[2]
    pt = math.hypot(px, py)
    pt2 = pt * pt
    pt3 = pt * pt2
    out = np.zeros((3, 3))
    out[0, 0] = -py / pt2
    out[0, 1] = px / pt2
    out[1, 0] = -cpasign * px / pt3
    out[1, 1] = -cpasign * py / pt3
    out[2, 0] = -px * pz / pt3
    out[2, 1] = -py * pz / pt3
    out[2, 2] = 1.0 / pt
    return out


@dataclass(eq=False)
class TrackFrame:
    """A local frame: rotation and shift from global, and from the previous frame."""

    rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    shift: np.ndarray = field(default_factory=lambda: np.zeros(3))
    delta_rotation: np.ndarray = field(default_factory=lambda: np.eye(3))
    delta_shift: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        self.rotation = _as_rotation(self.rotation)
        self.shift = _as_vector(self.shift)
        self.delta_rotation = _as_rotation(self.delta_rotation)
        self.delta_shift = _as_vector(self.delta_shift)

    @classmethod
    def from_previous(cls, last_frame: "TrackFrame", shift, bfield) -> "TrackFrame":
        """Build the frame reached from last_frame by a local shift, aligned with bfield.

        The shift is given in the coordinates of last_frame; bfield is global.
        """
        delta_shift = _as_vector(shift)
        rotation = np.array(last_frame.rotation, dtype=float)
        local_b = rotation @ _as_vector(bfield)
        theta, phi = _theta_phi(local_b)
        delta = _rot_z(phi) @ _rot_y(-theta) @ _rot_z(-phi)
        new_shift = last_frame.shift + rotation.T @ delta_shift
        return cls(delta @ rotation, new_shift, delta, delta_shift)

    def transform(self, v, kind: TransformType = TransformType.LOCAL_TO_LOCAL) -> np.ndarray:
        """Transform a position vector."""
        v = _as_vector(v)
        if kind is TransformType.LOCAL_TO_LOCAL:
            return self.delta_rotation @ (v - self.delta_shift)
        if kind is TransformType.LOCAL_TO_GLOBAL:
            return self.rotation.T @ v + self.shift
        if kind is TransformType.GLOBAL_TO_LOCAL:
            return self.rotation @ (v - self.shift)
        raise ValueError(f"unknown transform type: {kind!r}")

    def transform_bfield(self, b, kind: TransformType = TransformType.LOCAL_TO_LOCAL) -> np.ndarray:
        """Transform a field (direction) vector; shifts do not apply."""
        b = _as_vector(b)
        if kind is TransformType.LOCAL_TO_LOCAL:
            return self.delta_rotation @ b
        if kind is TransformType.LOCAL_TO_GLOBAL:
            return self.rotation.T @ b
        if kind is TransformType.GLOBAL_TO_LOCAL:
            return self.rotation @ b
        raise ValueError(f"unknown transform type: {kind!r}")

    def transform_state(self, sv) -> tuple[np.ndarray, np.ndarray]:
        """Rotate a helix state vector from the previous local frame into this one.

        The state is (drho, phi0, kappa, dz, tanl[, t0, ...]).  Returns the new
        state and the propagator matrix, sized to the state; entries beyond the
        five helix parameters of the propagator are left zero.
        """
        old = np.asarray(sv, dtype=float).reshape(-1)
        if old.size < 5:
            raise ValueError("a helix state needs at least five parameters")
        new = old.copy()
        rot = self.delta_rotation

        drho, phi0, cpa, dz0, tanl = (float(x) for x in old[:5])
        drhosign = 1.0 if drho >= 0 else -1.0
        cpasign = 1.0 if cpa >= 0 else -1.0
        pt = 1.0 / abs(cpa)
        s, c = math.sin(phi0), math.cos(phi0)

        on_pivot = abs(drho) < _ZERO_DIST_LIMIT and abs(dz0) < _ZERO_DIST_LIMIT

        if not on_pivot:
            t = np.array([-pt * s, pt * c, pt * tanl, drho * c, drho * s, dz0])
            dt_dap = _dt_dap_full(old, cpasign)
            dtr_dt = _dtr_dt(rot)
            tr = dtr_dt @ t
            px, py, pz, dx, dy, dz = (float(x) for x in tr)
            p_perp = math.hypot(px, py)

            new[0] = math.hypot(dx, dy) * drhosign
            if drho != 0.0 and dx != 0.0 and dy != 0.0:
                new[1] = math.atan2(drhosign * dy, drhosign * dx)
            new[2] = cpasign / p_perp
            new[3] = dz
            new[4] = pz / p_perp
            new[1] = _wrap_phi(float(new[1]))

            F = _dapp_dtr_full(tr, drhosign, cpasign) @ dtr_dt @ dt_dap
        else:
            t = np.array([-pt * s, pt * c, pt * tanl])
            dt_dap = _dt_dap_momentum(old, cpasign)
            tr = rot @ t
            px, py, pz = (float(x) for x in tr)
            p_perp = math.hypot(px, py)

            new[1] = math.atan2(-cpasign * py, -cpasign * px) + cpasign * math.pi / 2
            new[2] = cpasign / p_perp
            new[4] = pz / p_perp
            new[1] = _wrap_phi(float(new[1]))

            temp = _dapp_dtr_momentum(tr, cpasign) @ rot @ dt_dap
            F = np.zeros((5, 5))
            F[0, 0] = 1.0
            F[3, 3] = 1.0
            idx = [1, 2, 4]
            F[np.ix_(idx, idx)] = temp

        if drho < _ZERO_DIST_LIMIT and new[0] == 0.0 and abs(dz0) > _ZERO_DIST_LIMIT:
            F = np.eye(5)

        full = np.zeros((old.size, old.size))
        n = min(5, old.size)
        full[:n, :n] = F[:n, :n]
        return new, full