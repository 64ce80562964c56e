"""
Drivers built on :class:`cashkarp.integrator.Integrator`.

    - ``trajectory``: record every accepted step up to a limit
    - ``odeint``: integrate an array in place between two bounds
"""

from dataclasses import dataclass

import numpy as np

from .integrator import Integrator
from .logger import get_logger

log = get_logger(__name__)

MAXSTP = 100_000_000


@dataclass
class Trajectory:
    """Accepted states of an integration.

    Row ``i`` of every array belongs to the same point; row 0 is the
    state the integration started from.
    """

    t: np.ndarray   # (m,)
    y: np.ndarray   # (m, n)
    dt: np.ndarray  # (m,)  step proposed at that point

    def __len__(self):
        return self.t.size


def trajectory(integ, t_limit, max_steps=MAXSTP):
    """
    Step *integ* until it reaches *t_limit*, recording ``(t, y, dt)``.

    Parameters
    ----------
    integ : Integrator
        Advanced in place.
    t_limit : float
        Final value of the independent variable.
    max_steps : int
        Upper bound on step requests.

    Returns
    -------
    Trajectory

    Raises
    ------
    RuntimeError
        More than *max_steps* steps were needed.
    """
    ts = [integ.t]
    ys = [integ.y.copy()]
    dts = [integ.dt]

    for _ in range(max_steps):
        nok = integ.nok
        more = integ.step(t_limit)
        if integ.nok != nok:
            ts.append(integ.t)
            ys.append(integ.y.copy())
            dts.append(integ.dt)
        if not more:
            log.debug("trajectory: %d accepted, %d rejected, %d evaluations",
                      integ.nok, integ.nbad, integ.nfev)
            return Trajectory(np.array(ts), np.array(ys), np.array(dts))

    raise RuntimeError("Too many steps in trajectory.")


def odeint(y, t1, t2, deriv, h1, max_steps=MAXSTP, **options):
    """
    Adaptive integration of *y* from *t1* to *t2*.

    Parameters
    ----------
    y : ndarray, float32 or float64 — state vector (modified in-place)
    t1, t2 : float — integration bounds
    deriv : callable(dydt, y, t) — derivative function
    h1 : float — initial step size; its sign is taken from ``t2 - t1``
    max_steps : int — upper bound on step requests
    **options — controller options (see ``IntegratorConfig``)

    Returns
    -------
    nok : int — number of accepted steps
    nbad : int — number of rejected attempts
    """
    if not (isinstance(y, np.ndarray) and y.dtype in (np.float32, np.float64)):
        raise TypeError("odeint integrates in place: y must be a float32 or float64 ndarray")
    if t1 == t2:
        return 0, 0

    integ = Integrator(y, deriv, t1, np.copysign(h1, t2 - t1), **options)
    for _ in range(max_steps):
        if not integ.step(t2):
            return integ.nok, integ.nbad

    raise RuntimeError("Too many steps in odeint.")
