"""
Adaptive Cash-Karp Runge-Kutta integrator.

Embedded 5(4) Runge-Kutta pair with Cash-Karp coefficients: six stage
evaluations give a fifth-order update and, from the same stages, a
fourth-order solution whose difference estimates the local truncation
error.  The step controller accepts or rejects each trial step against a
tolerance and adapts the step size with a power law.

Implements:
    - Stage evaluation on a fixed, preallocated workspace
    - Pluggable error scaling / reduction (see :mod:`cashkarp.errornorms`)
    - Step acceptance with retry, min/max step clamping and min-step forcing
    - Fixed-size steps without adaptation (convergence studies)

The derivative callback has the signature ``deriv(dydt, y, t)`` and
writes the derivative into ``dydt``.  It must not keep a reference to
either array: both are scratch buffers reused on every call.

Instances are not thread safe.  Use one integrator per trajectory.
"""

import math
from enum import IntEnum

import numpy as np
from numba import njit

from .config import IntegratorConfig
from .logger import DEBUG2, DEBUG3, RateLimitedLog, get_logger

log = get_logger(__name__)

# ─── Controller constants ─────────────────────────────────────────────
# Exponents applied to tol/error when shrinking a rejected step and
# when predicting the next step after an accepted one.
PSHRNK = 0.20
PGROW = 0.25
# Relative (to |dt|) distance at which t counts as having reached t_limit.
DONE_TOL = 1.0e-10
CONTINUE_TOL = 1.0e-8


# ─── Cash-Karp Butcher tableau ───────────────────────────────────────
_a = (0.0, 1.0 / 5.0, 3.0 / 10.0, 3.0 / 5.0, 1.0, 7.0 / 8.0)

_B = np.array([
    [0.0, 0.0, 0.0, 0.0, 0.0],
    [1.0 / 5.0, 0.0, 0.0, 0.0, 0.0],
    [3.0 / 40.0, 9.0 / 40.0, 0.0, 0.0, 0.0],
    [3.0 / 10.0, -9.0 / 10.0, 6.0 / 5.0, 0.0, 0.0],
    [-11.0 / 54.0, 5.0 / 2.0, -70.0 / 27.0, 35.0 / 27.0, 0.0],
    [1631.0 / 55296.0, 175.0 / 512.0, 575.0 / 13824.0,
     44275.0 / 110592.0, 253.0 / 4096.0],
])

# Fifth-order weights (c2 = c5 = 0).
_c1 = 37.0 / 378.0
_c3 = 250.0 / 621.0
_c4 = 125.0 / 594.0
_c6 = 512.0 / 1771.0

# Fourth-order minus fifth-order weights (dc2 = 0).
_dc1 = 2825.0 / 27648.0 - _c1
_dc3 = 18575.0 / 48384.0 - _c3
_dc4 = 13525.0 / 55296.0 - _c4
_dc5 = 277.0 / 14336.0
_dc6 = 1.0 / 4.0 - _c6

# State dtypes the compiled kernels are built for; others become float64.
_KERNEL_DTYPES = (np.dtype(np.float32), np.dtype(np.float64))

# Workspace rows: k1..k6, trial state, error scale, scaled error.
_NSTAGE = 6
_W, _SCALE, _ERR = 6, 7, 8
_NWORK = 9


class StepStatus(IntEnum):
    ATTEMPTING = 0
    ACCEPTED = 1
    MIN_STEP_FORCED = 2
    FATAL = 3


class NumericalInstabilityError(RuntimeError):
    """The error estimate is NaN or infinite; the step cannot be taken."""


class StepSizeUnderflowError(NumericalInstabilityError):
    """A rejected step shrank until it no longer changes ``t``."""


# ═════════════════════════════════════════════════════════════════════
#  Compiled kernels
#  Terms with a zero weight are left out rather than multiplied by 0,
#  so an infinite stage that does not contribute cannot turn into NaN.
# ═════════════════════════════════════════════════════════════════════

@njit(cache=True)
def _stage_state(w, y, h, k, b, stage):
    """w = y + h * sum_{j < stage} b[j] * k[j]"""
    for i in range(y.size):
        acc = b[0] * k[0, i]
        for j in range(1, stage):
            acc += b[j] * k[j, i]
        w[i] = y[i] + h * acc


@njit(cache=True, error_model="numpy")
def _scaled_error(err, h, k, scale):
    for i in range(err.size):
        err[i] = h * (_dc1 * k[0, i] + _dc3 * k[2, i] + _dc4 * k[3, i]
                      + _dc5 * k[4, i] + _dc6 * k[5, i]) / scale[i]


@njit(cache=True)
def _fifth_order_update(y, h, k):
    for i in range(y.size):
        y[i] += h * (_c1 * k[0, i] + _c3 * k[2, i] + _c4 * k[3, i]
                     + _c6 * k[5, i])


def _min_mag(a, b):
    """Whichever of *a*, *b* is smaller in the direction of *a*."""
    return min(a, b) if a > 0 else max(a, b)


def _max_mag(a, b):
    """Whichever of *a*, *b* is larger in the direction of *a*."""
    return max(a, b) if a > 0 else min(a, b)


# ═════════════════════════════════════════════════════════════════════
#  Integrator
# ═════════════════════════════════════════════════════════════════════

class Integrator:
    """
    Adaptive Cash-Karp integrator for ``dy/dt = f(t, y)``.

    Parameters
    ----------
    y0 : array_like, shape (n,)
        Initial state.  A float32 or float64 ndarray is used as-is and
        updated in place; anything else is copied to float64.
    deriv : callable(dydt, y, t)
        Writes the derivative at ``(y, t)`` into ``dydt``.  A non-None
        return value is copied into ``dydt`` instead.
    t0 : float
        Initial value of the independent variable.
    dt0 : float
        Initial step size; its sign sets the direction of integration.
    config : IntegratorConfig, optional
        Controller settings.  Keyword *options* override its fields (see
        :meth:`IntegratorConfig.from_options`).
    logger : logging.Logger, optional
        Destination of controller diagnostics.

    Attributes
    ----------
    y, t, dt
        Current state, independent variable and next proposed step.
    hdid : float
        Size of the last step taken.
    nok, nbad, nfev : int
        Accepted steps, rejected attempts and derivative evaluations.
    status : StepStatus
        Outcome of the last step request.
    """

    def __init__(self, y0, deriv, t0, dt0, config=None, logger=None, **options):
        if config is None or options:
            config = IntegratorConfig.from_options(config, **options)
        self.config = config

        y = np.asarray(y0)
        if np.iscomplexobj(y):
            raise TypeError("complex state vectors are not supported")
        if y.dtype not in _KERNEL_DTYPES:
            y = y.astype(np.float64)
        if y.ndim != 1:
            raise ValueError(f"y0 must be one-dimensional, got shape {y.shape}")
        if y.size == 0:
            raise ValueError("y0 must have at least one component")
        if dt0 == 0 or not math.isfinite(dt0):
            raise ValueError(f"dt0 must be finite and nonzero, got {dt0!r}")

        self.deriv = deriv
        self.y = y
        self.n = y.size
        self.t = float(t0)
        self.dt = float(dt0)

        self.hdid = 0.0
        self.nok = 0
        self.nbad = 0
        self.nfev = 0
        self.status = StepStatus.ACCEPTED

        self._work = np.zeros((_NWORK, self.n), dtype=y.dtype)
        self._k = self._work[:_NSTAGE]
        self._w = self._work[_W]
        self._error_scale = self._work[_SCALE]
        self._error = self._work[_ERR]

        self._trace = logger if logger is not None else log
        self._log = RateLimitedLog(
            self._trace,
            max_messages=config.max_log_messages,
            enabled=config.verbose,
        )

    def __repr__(self):
        return (f"{type(self).__name__}(n={self.n}, t={self.t!r}, "
                f"dt={self.dt!r}, tol={self.config.tol!r})")

    # ── stage evaluation ────────────────────────────────────────────

    def _eval(self, dydt, y, t):
        out = self.deriv(dydt, y, t)
        self.nfev += 1
        if out is not None:
            dydt[:] = out

    def _calculate_k1(self):
        self._eval(self._k[0], self.y, self.t)

    def _calculate_ks(self, h):
        for stage in range(1, _NSTAGE):
            _stage_state(self._w, self.y, h, self._k, _B[stage], stage)
            self._eval(self._k[stage], self._w, self.t + _a[stage] * h)

    # ── error estimate ──────────────────────────────────────────────

    def _calculate_error_scale(self, h):
        self.config.error_norm.scale_all(h, self.y, self._k[0], self._error_scale)

    def _calculate_error(self, h):
        _scaled_error(self._error, h, self._k, self._error_scale)
        # Per component: a user reduce may drop NaN.
        if not np.isfinite(self._error).all():
            return math.nan
        return self.config.error_norm.norm(self._error)

    def _update(self, h):
        _fifth_order_update(self.y, h, self._k)
        self.t += h
        self.hdid = h

    # ── step control ────────────────────────────────────────────────

    def _trial_step(self, t_limit):
        """Stored dt clipped to t_limit and clamped to the magnitude bounds.

        Returns the trial step and the smallest magnitude it may shrink to.
        """
        cfg = self.config
        h = self.dt
        floor = cfg.dt_min_mag

        if t_limit is not None:
            remaining = t_limit - self.t
            h = min(remaining, h) if h > 0 else max(remaining, h)
            # Never overshoot the limit to honour dt_min_mag.
            floor = min(floor, abs(remaining))

        if cfg.dt_max_mag is not None and abs(h) > cfg.dt_max_mag:
            self._log("step", "step greater than maximum stepsize requested. "
                              "dt magnitude has been limited.")
            h = math.copysign(cfg.dt_max_mag, h)

        if abs(h) < floor:
            self._log("step", "step smaller than minimum stepsize requested. "
                              "dt magnitude has been limited.")
            h = math.copysign(floor, h)

        return h, floor

    def step(self, t_limit=None):
        """
        Take one accepted step, retrying with smaller steps as needed.

        Parameters
        ----------
        t_limit : float, optional
            Do not step past this value of the independent variable.

        Returns
        -------
        bool
            False once ``t`` has reached *t_limit* (including when it was
            already there and nothing was done); always True without a
            limit.

        Raises
        ------
        NumericalInstabilityError
            The error estimate became non-finite.  ``y``, ``t`` and ``dt``
            are left as they were before the call.
        StepSizeUnderflowError
            A rejected step shrank below the resolution of ``t``.
        """
        cfg = self.config

        if t_limit is not None and abs(self.t - t_limit) < abs(self.dt) * DONE_TOL:
            return False

        h, floor = self._trial_step(t_limit)
        self.status = StepStatus.ATTEMPTING

        # k1 and the error scale depend only on the current state.
        self._calculate_k1()
        self._calculate_error_scale(h)

        while True:
            self._calculate_ks(h)
            error = self._calculate_error(h)

            if not math.isfinite(error):
                self.status = StepStatus.FATAL
                raise NumericalInstabilityError(
                    f"cashkarp::step() NaN encountered while integrating "
                    f"(t={self.t!r}, h={h!r}, error={error!r})"
                )

            if error < cfg.tol or self.status == StepStatus.MIN_STEP_FORCED:
                break

            self.nbad += 1
            self._trace.log(DEBUG2, "rejected h=%.6g at t=%.10g: error %.3e >= tol %.3e",
                            h, self.t, error, cfg.tol)

            htmp = cfg.safety_factor * h * (cfg.tol / error) ** PSHRNK
            h = _max_mag(h / cfg.max_decrease_factor, htmp)

            if abs(h) < floor:
                h = math.copysign(floor, h)
                self._log("step", "minimum stepsize reached.")
                self.status = StepStatus.MIN_STEP_FORCED
            elif self.t + h == self.t:
                self.status = StepStatus.FATAL
                raise StepSizeUnderflowError(
                    f"cashkarp::step() stepsize underflow at t={self.t!r}"
                )

        self._update(h)
        self.nok += 1
        if self.status != StepStatus.MIN_STEP_FORCED:
            self.status = StepStatus.ACCEPTED
        self._trace.log(DEBUG3, "accepted h=%.6g, t=%.10g, error %.3e",
                        h, self.t, error)

        ratio = cfg.tol / error if error > 0.0 else math.inf
        hnext = cfg.safety_factor * h * ratio ** PGROW
        dt = _max_mag(self.dt / cfg.max_decrease_factor,
                      _min_mag(self.dt * cfg.max_increase_factor, hnext))
        if cfg.dt_max_mag is not None and abs(dt) > cfg.dt_max_mag:
            dt = math.copysign(cfg.dt_max_mag, dt)
        elif abs(dt) < cfg.dt_min_mag:
            dt = math.copysign(cfg.dt_min_mag, dt)
        self.dt = dt

        if t_limit is None:
            return True
        return abs(self.t - t_limit) > abs(self.dt) * CONTINUE_TOL

    def steps(self, n, t_limit=None):
        """Call :meth:`step` up to *n* times (``math.inf`` allowed).

        Returns False if *t_limit* was reached first, True otherwise.
        """
        count = 0
        while count < n:
            if not self.step(t_limit):
                return False
            count += 1
        return True

    def fixed_step(self, h=None):
        """
        Advance by exactly *h* (default: the stored ``dt``) with the
        fifth-order update, without error control or step adaptation.

        Returns the new ``t``.
        """
        h = self.dt if h is None else float(h)
        self._calculate_k1()
        self._calculate_ks(h)
        self._update(h)
        self.nok += 1
        return self.t


def rkck(y0, deriv, t0, dt0, **options):
    """Create an :class:`Integrator`; *options* as for :class:`IntegratorConfig`."""
    return Integrator(y0, deriv, t0, dt0, **options)
