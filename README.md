# kaltrack

Building blocks for Kalman-filter track fitting in layered detectors:
measurement layers and their materials, energy loss and multiple
scattering, local frames for non-uniform magnetic fields, layer-by-layer
transport of a track state, and a chi-square helix fit.

Lengths are in millimetres and momenta and masses in GeV. Material
densities [g/cm^3] and radiation lengths [cm] use the usual
centimetre-based units. Path lengths are converted internally.

## Installation

    pip install .

To run the tests:

    pip install ".[test]"
    pytest

## Modules

### `kaltrack.attributes`

- `Element` gives an object an optional `parent`. `find_parent(recursive=True)`
  returns the outermost ancestor. With `recursive=False` it returns the
  immediate parent. An object without a parent returns itself.
- `Lockable` provides `lock()`, `unlock()` and the read-only `is_locked`.
- `Drawable.draw(color=None, opt="")` hands the colour to the `_render` hook
  and returns it. The base class renders nothing. Calls without a colour take
  the next value from a cycle shared by all drawables: 1, 2, …, 9, 0, 1, …

### `kaltrack.frame`

`TrackFrame` is a local frame. It holds a rotation and a shift from the global
frame, plus a rotation and a shift from the previous local frame. All of them
are numpy arrays.

- `TrackFrame.from_previous(last_frame, shift, bfield)` builds the next frame.
  `shift` is given in the coordinates of `last_frame` and `bfield` is a global
  field vector. The new frame's local z axis points along the field.
- `transform(v, kind)` transforms a position vector.
  `transform_bfield(b, kind)` transforms a field vector without any shift.
  `kind` is a `TransformType`: `LOCAL_TO_LOCAL` (previous frame to this one,
  the default), `LOCAL_TO_GLOBAL` or `GLOBAL_TO_LOCAL`.
- `transform_state(sv)` rotates a helix state (drho, phi0, kappa, dz, tanl[, t0])
  from the previous frame into this one. It returns the new state and the
  propagator matrix, sized to the state.

### `kaltrack.measlayer`

- `Material(a, z, density, radiation_length, name="")` is a frozen dataclass.
- `MeasLayer(material_in, material_out, is_active=True, name="TVMeasLayer")` is
  an abstract layer with an `index`. `material(is_outgoing)` picks the outer or
  the inner material.
  - `energy_loss(is_outgoing, track, df, mass=PION_MASS)` applies the
    Bethe-Bloch formula. For a track in a field it returns the signed change of
    kappa. For a straight track it returns the deposited energy.
  - `calc_qms(is_outgoing, track, df, mass=PION_MASS, sdim=6)` returns the
    multiple-scattering process-noise matrix in the thin-layer approximation.
  - Subclasses implement `xv_to_mv`, `hit_to_xv` and `calc_dh_da`.

  The `track` argument needs `kappa`, `tan_lambda`, `rho`, `momentum` and
  `is_in_b` (the `TrackLike` protocol).

### `kaltrack.hit`

`TrackHit(meas_layer=None, x=None, dx=None, bfield=30.0)` is an abstract hit.
It holds read-only arrays of coordinates `x` and errors `dx`, and `dimension`
gives their number. A `ValueError` is raised if `x` and `dx` differ in length.
Subclasses implement `xv_to_mv(xv, t0)`. `MDIM` (2) and `SDIM` (6) are the
default measurement and state dimensions.

### `kaltrack.filtercond`

`FilterCondition.is_accepted(site)` accepts every site. Subclass it to add
cuts.

### `kaltrack.detector`

- `KalDetector(layers=None)` is an iterable, sized collection of layers. Use
  `append` to add a layer.
- `KalDetCradle` collects detectors through `install(detector)`, which sets
  the parents of the layers and the detector. When the cradle is first
  iterated or indexed, or when `close()` is called, the layers are sorted by
  their `sorting_policy` attribute and numbered from 0. If any layer lacks that
  attribute, installation order is kept instead. After `close()`, `install`
  raises `RuntimeError` until `reopen()` is called. `ms_enabled` and
  `dedx_enabled` switch material effects on and off. `cradle[i]` returns the
  layer with index `i`. An out-of-range index raises `IndexError`.

### `kaltrack.transport`

- `transport(cradle, from_layer, to_layer, track, mass=PION_MASS)` moves
  `track` in place through every layer from `from_layer` to `to_layer`. It
  skips crossings that lie beyond the target on the far side. From the second
  crossing on it adds multiple-scattering noise and corrects kappa for energy
  loss, following the cradle's switches. It returns a `TransportResult` with
  `pivot`, `state`, `propagator` and `noise`. A layer not installed in the
  cradle raises `ValueError`.

  Layers must provide `calc_xing_point_with(track, phi, mode, eps)` and
  `outward_normal(x)` (the `Surface` protocol). The track must provide
  `state`, `pivot`, `move_to`, `set_state` and `calc_dx_dphi` (the
  `TransportTrack` protocol).
- `propagate(F, Q, DF, Qms)` performs one step. It returns `DF @ F` and
  `DF @ (Q + Qms) @ DF.T`.

### `kaltrack.track`

`KalTrack(sites=None, mass=PION_MASS)` holds measurement sites; `append` adds
one. `fit_to_helix(state)` starts from `state` and fits the unlocked sites by
Levenberg-Marquardt. It returns a `HelixFit` with `state`, `covariance`, `chi2`
and `ndf`. A track without sites raises `ValueError`. If the iteration limit is
reached, a `RuntimeWarning` is issued and the best state found is returned.
Sites follow the `FitSite` protocol: `is_locked`, `dimension`, `meas_vec`,
`meas_noise_mat`, `calc_expected_meas_vec(state)` and
`calc_meas_vec_derivative(state)`. Either method may return `None` when the
state gives no hit.

## Example

```python
import numpy as np
from kaltrack.frame import TrackFrame, TransformType

frame = TrackFrame.from_previous(TrackFrame(), np.array([0.0, 0.0, 10.0]),
                                 np.array([0.0, 0.3, 3.0]))
local = frame.transform(np.array([1.0, 2.0, 3.0]), TransformType.GLOBAL_TO_LOCAL)
back = frame.transform(local, TransformType.LOCAL_TO_GLOBAL)  # == [1, 2, 3]

state, propagator = frame.transform_state([0.5, 0.1, 0.002, 1.0, 0.3, 0.0])
```

## What it does not provide

The package has no concrete geometry. It contains no helical or straight track
classes, no surfaces such as cylinders or planes, and no ready-made
measurement layers or hits. You supply these through the abstract classes and
protocols described above. Nor does it include the Kalman filter loop itself
(prediction, filtering and smoothing over sites), magnetic field maps or a
Runge-Kutta track model. There is no command-line program.