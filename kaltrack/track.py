"""Tracks made of measurement sites, with a chi-square helix fit."""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Protocol

import numpy as np

from kaltrack.measlayer import PION_MASS

_CHI2_DUMMY = 1.0e20
_CHI2_TOLERANCE = 1.0e-8
_LAMBDA_START = 1.0
_LAMBDA_INCREASE = 10.0
_LAMBDA_DECREASE = 0.1
_LOOP_MAX = 100


class FitSite(Protocol):
    """A measurement site as seen by the helix fit.

    ``calc_expected_meas_vec`` and ``calc_meas_vec_derivative`` return None
    when the track state gives no hit on the site.
    """

    is_locked: bool
    dimension: int
    meas_vec: np.ndarray
    meas_noise_mat: np.ndarray

    def calc_expected_meas_vec(self, state: np.ndarray) -> Optional[np.ndarray]: ...

    def calc_meas_vec_derivative(self, state: np.ndarray) -> Optional[np.ndarray]: ...


@dataclass
class HelixFit:
    """Result of a helix fit: best state, its covariance, chi-square and degrees of freedom."""

    state: np.ndarray
    covariance: np.ndarray
    chi2: float
    ndf: int


class KalTrack:
    """A track: an ordered collection of measurement sites and a particle mass [GeV]."""

    def __init__(self, sites: Optional[Iterable[FitSite]] = None, mass: float = PION_MASS) -> None:
        self._sites: List[FitSite] = list(sites) if sites is not None else []
        self.mass = mass

    def append(self, site: FitSite) -> None:
        """Add a site to the track."""
        self._sites.append(site)

    def __iter__(self) -> Iterator[FitSite]:
        return iter(self._sites)

    def __len__(self) -> int:
        return len(self._sites)

    def fit_to_helix(self, state) -> HelixFit:
        """Chi-square fit of the unlocked sites to one helix, by Levenberg-Marquardt.

        Starts from the given state. If the iteration limit is reached, a
        RuntimeWarning is issued and the best state found so far is returned.
        """
        if not self._sites:
            raise ValueError("cannot fit a track without sites")

        a = np.array(state, dtype=float).reshape(-1)
        sdim = a.size
        mdim = self._sites[0].dimension

        a_best = a.copy()
        chi2_best = _CHI2_DUMMY
        lam = _LAMBDA_START
        grad_best = np.zeros(sdim)
        hess_best = np.zeros((sdim, sdim))
        nloops = 0
        nsites = 0

        while True:
            if nloops > _LOOP_MAX:
                warnings.warn(
                    f"helix fit reached the loop count limit, nloops = {nloops}",
                    RuntimeWarning,
                    stacklevel=2,
                )
                a = a_best
                chi2 = chi2_best
                break
            nloops += 1

            grad = np.zeros(sdim)
            hess = np.zeros((sdim, sdim))
            chi2 = 0.0
            nsites = 0
            for site in self._sites:
                if site.is_locked:
                    continue
                h = site.calc_expected_meas_vec(a)
                if h is None:
                    continue
                H = site.calc_meas_vec_derivative(a)
                if H is None:
                    continue
                nsites += 1
                H = np.asarray(H, dtype=float)
                v_inv = np.linalg.inv(np.asarray(site.meas_noise_mat, dtype=float))
                res = np.asarray(site.meas_vec, dtype=float).reshape(-1) - np.asarray(
                    h, dtype=float
                ).reshape(-1)
                grad += res @ v_inv @ H
                chi2 += float(res @ v_inv @ res)
                hess += H.T @ v_inv @ H

            if abs(chi2_best - chi2) < _CHI2_TOLERANCE:
                hess_best = hess
                break

            if chi2 < chi2_best:
                chi2_best = chi2
                a_best = a.copy()
                grad_best = grad
                hess_best = hess
                lam *= _LAMBDA_DECREASE
            else:
                grad = grad_best
                hess = hess_best
                lam *= _LAMBDA_INCREASE

            damped = hess.copy()
            damped[np.diag_indices(sdim)] *= 1.0 + lam
            a = a + np.linalg.inv(damped) @ grad

        return HelixFit(
            state=np.array(a, dtype=float),
            covariance=np.linalg.inv(hess_best),
            chi2=float(chi2),
            ndf=nsites * mdim - sdim,
        )