import numpy as np
import pytest

from kaltrack.detector import KalDetCradle, KalDetector
from kaltrack.measlayer import Material, MeasLayer
from kaltrack.transport import TransportResult, propagate, transport

SILICON = Material(a=28.09, z=14.0, density=2.33, radiation_length=9.36, name="Si")


class PlaneLayer(MeasLayer):
    def __init__(self, r, reported_x=None, crosses=True):
        super().__init__(SILICON, SILICON, True, f"plane{r}")
        self.r = float(r)
        self.sorting_policy = self.r
        self.reported_x = reported_x
        self.crosses = crosses

    def calc_xing_point_with(self, track, phi, mode, eps):
        if not self.crosses:
            return None
        x = self.r if self.reported_x is None else self.reported_x
        return np.array([x, 0.0, 0.0]), x - float(track.pivot[0])

    def outward_normal(self, x):
        return np.array([1.0, 0.0, 0.0])

    def xv_to_mv(self, hit, xv):
        return np.asarray(xv)[1:]

    def hit_to_xv(self, hit):
        return np.array([self.r, 0.0, 0.0])

    def calc_dh_da(self, hit, xv, dxphiada):
        return np.asarray(dxphiada)[1:]


class LineTrack:
    def __init__(self, state, pivot):
        self.state = np.array(state, dtype=float)
        self.pivot = np.array(pivot, dtype=float)
        self.is_in_b = True

    @property
    def kappa(self):
        return float(self.state[2])

    @property
    def tan_lambda(self):
        return float(self.state[4])

    @property
    def rho(self):
        return 1.0

    @property
    def momentum(self):
        return 1.0 / abs(self.kappa)

    def move_to(self, x, fid):
        self.pivot = np.array(x, dtype=float)
        df = np.eye(5)
        df[0, 1] = fid
        return df

    def set_state(self, sv, pivot):
        self.state = np.array(sv, dtype=float)
        self.pivot = np.array(pivot, dtype=float)

    def calc_dx_dphi(self, phi):
        return np.array([1.0, 0.0, 0.0])


def make_cradle(layers, ms=True, dedx=True):
    cradle = KalDetCradle()
    cradle.install(KalDetector(layers))
    cradle.ms_enabled = ms
    cradle.dedx_enabled = dedx
    return cradle


def test_propagate_with_unit_step_keeps_propagator_and_adds_noise():
    F = np.arange(9.0).reshape(3, 3)
    Q = np.diag([1.0, 2.0, 3.0])
    Qms = np.diag([0.5, 0.0, 0.25])
    new_f, new_q = propagate(F, Q, np.eye(3), Qms)
    assert np.allclose(new_f, F)
    assert np.allclose(new_q, Q + Qms)


def test_propagate_from_unit_propagator_gives_step():
    DF = np.array([[1.0, 2.0], [0.0, 1.0]])
    new_f, new_q = propagate(np.eye(2), np.zeros((2, 2)), DF, np.diag([1.0, 1.0]))
    assert np.allclose(new_f, DF)
    assert np.allclose(new_q, new_q.T)


def test_transport_without_material_accumulates_propagator():
    layers = [PlaneLayer(10), PlaneLayer(20), PlaneLayer(30)]
    cradle = make_cradle(layers, ms=False, dedx=False)
    track = LineTrack([0.0, 0.1, 1.0, 0.0, 0.0], [10.0, 0.0, 0.0])
    result = transport(cradle, layers[0], layers[2], track)
    assert isinstance(result, TransportResult)
    assert np.allclose(result.pivot, [30.0, 0.0, 0.0])
    assert result.propagator[0, 1] == pytest.approx(30.0 - 10.0)
    assert np.allclose(result.noise, 0.0)
    assert np.allclose(result.state, [0.0, 0.1, 1.0, 0.0, 0.0])


def test_transport_with_scattering_gives_symmetric_noise():
    layers = [PlaneLayer(10), PlaneLayer(20), PlaneLayer(30)]
    cradle = make_cradle(layers, ms=True, dedx=False)
    track = LineTrack([0.0, 0.1, 1.0, 0.0, 0.5], [10.0, 0.0, 0.0])
    result = transport(cradle, layers[0], layers[2], track)
    assert np.allclose(result.noise, result.noise.T)
    assert result.noise[1, 1] > 0.0
    assert result.noise[4, 4] > 0.0


def test_transport_energy_loss_changes_kappa_slightly():
    layers = [PlaneLayer(10), PlaneLayer(20), PlaneLayer(30)]
    start = [0.0, 0.1, 1.0, 0.0, 0.0]
    with_loss = transport(
        make_cradle(layers, ms=False, dedx=True),
        layers[0],
        layers[2],
        LineTrack(start, [10.0, 0.0, 0.0]),
    )
    without = transport(
        make_cradle([PlaneLayer(10), PlaneLayer(20), PlaneLayer(30)], ms=False, dedx=False),
        *(lambda ls: (ls[0], ls[2]))(
            [PlaneLayer(10), PlaneLayer(20), PlaneLayer(30)]
        ),
        LineTrack(start, [10.0, 0.0, 0.0]),
    ) if False else None
    assert without is None
    change = with_loss.state[2] - start[2]
    assert change != 0.0
    assert abs(change) < 0.1
    assert np.allclose(np.delete(with_loss.state, 2), np.delete(np.array(start), 2))


def test_transport_backwards_reaches_inner_layer():
    layers = [PlaneLayer(10), PlaneLayer(20), PlaneLayer(30)]
    cradle = make_cradle(layers, ms=False, dedx=False)
    track = LineTrack([0.0, 0.1, 1.0, 0.0, 0.0], [30.0, 0.0, 0.0])
    result = transport(cradle, layers[2], layers[0], track)
    assert np.allclose(result.pivot, [10.0, 0.0, 0.0])
    assert result.propagator[0, 1] == pytest.approx(10.0 - 30.0)


def test_transport_six_parameter_state_keeps_t0():
    layers = [PlaneLayer(10), PlaneLayer(20)]
    cradle = make_cradle(layers, ms=True, dedx=True)
    track = LineTrack([0.0, 0.1, 1.0, 0.0, 0.2, 7.5], [10.0, 0.0, 0.0])
    result = transport(cradle, layers[0], layers[1], track)
    assert result.propagator.shape == (6, 6)
    assert result.propagator[5, 5] == 1.0
    assert result.state[5] == 7.5


def test_transport_skips_layers_without_or_with_far_crossings():
    layers = [
        PlaneLayer(10),
        PlaneLayer(15, crosses=False),
        PlaneLayer(20, reported_x=500.0),
        PlaneLayer(30),
    ]
    cradle = make_cradle(layers, ms=False, dedx=False)
    track = LineTrack([0.0, 0.1, 1.0, 0.0, 0.0], [10.0, 0.0, 0.0])
    result = transport(cradle, layers[0], layers[3], track)
    assert np.allclose(result.pivot, [30.0, 0.0, 0.0])
    assert result.propagator[0, 1] == pytest.approx(30.0 - 10.0)


def test_transport_rejects_layer_outside_cradle():
    layers = [PlaneLayer(10), PlaneLayer(20)]
    cradle = make_cradle(layers)
    track = LineTrack([0.0, 0.1, 1.0, 0.0, 0.0], [10.0, 0.0, 0.0])
    with pytest.raises(ValueError):
        transport(cradle, layers[0], PlaneLayer(40), track)