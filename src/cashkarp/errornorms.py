"""
Error norms for the adaptive Cash-Karp controller.

An error norm turns the per-component difference between the fifth- and
fourth-order solutions into the single scalar compared against ``tol``.
It is a strategy with three per-component operations:

    scale(i, dt, y_i, dydt_i) -> s_i          error normalisation
    reduce(i, acc, e_i)       -> acc          fold over components
    post(acc)                 -> err          final transform

plus the array-level ``scale_all`` / ``norm`` that the integrator calls.
The base class implements those two by looping over the per-component
operations; ``MaxNorm`` and ``RmsNorm`` replace them with NumPy
reductions that give the same result.  A subclass (or instance) that
redefines one of the three operations gets the looped form for the
array-level call that depends on it.
"""

from typing import Callable

import numpy as np

TINY = 1.0e-32


# ─── default per-component functions ─────────────────────────────────

def default_error_scale(i, dt, y, dydt):
    """Mixed relative/absolute scale ``|y| + |dt*dydt| + TINY``."""
    return abs(y) + abs(dt * dydt) + TINY


def default_error_reduce(i, acc, err):
    """Infinity-norm fold: running maximum of ``|err|``."""
    # NaN must survive the fold so the caller can detect it.
    a = abs(err)
    if a != a:
        return a
    return max(acc, a)


def default_error_post(acc):
    return acc


def _uses_own(norm, cls, *names):
    """True if *norm* has not redefined any of *names* away from *cls*."""
    kind = type(norm)
    return all(name not in vars(norm) and getattr(kind, name) is getattr(cls, name)
               for name in names)


def _default_scale_all(dt, y, dydt, out):
    np.abs(y, out=out)
    out += np.abs(dt * dydt)
    out += TINY
    return out


# ═════════════════════════════════════════════════════════════════════
#  Strategy objects
# ═════════════════════════════════════════════════════════════════════

class ErrorNorm:
    """Base error norm; defaults to the infinity norm, one component at a time."""

    def scale(self, i, dt, y, dydt):
        return default_error_scale(i, dt, y, dydt)

    def reduce(self, i, acc, err):
        return default_error_reduce(i, acc, err)

    def post(self, acc):
        return default_error_post(acc)

    def scale_all(self, dt, y, dydt, out):
        """Fill *out* with the error scale of every component."""
        for i in range(y.size):
            out[i] = self.scale(i, dt, float(y[i]), float(dydt[i]))
        return out

    def norm(self, err):
        """Reduce the normalised error vector *err* to a scalar."""
        err = np.asarray(err)
        acc = 0.0
        for i in range(err.size):
            acc = self.reduce(i, acc, float(err[i]))
        return float(self.post(acc))


class MaxNorm(ErrorNorm):
    """Infinity norm with the default scale, vectorised."""

    def scale_all(self, dt, y, dydt, out):
        if not _uses_own(self, MaxNorm, "scale"):
            return ErrorNorm.scale_all(self, dt, y, dydt, out)
        return _default_scale_all(dt, y, dydt, out)

    def norm(self, err):
        if not _uses_own(self, MaxNorm, "reduce", "post"):
            return ErrorNorm.norm(self, err)
        return float(np.max(np.abs(err)))


class RmsNorm(ErrorNorm):
    """
    Root-mean-square norm with the default scale.

    ``reduce`` keeps a running mean of squares, so the per-component form
    needs no knowledge of the vector length.
    """

    def reduce(self, i, acc, err):
        return acc + (err * err - acc) / (i + 1)

    def post(self, acc):
        return np.sqrt(acc)

    def scale_all(self, dt, y, dydt, out):
        if not _uses_own(self, RmsNorm, "scale"):
            return ErrorNorm.scale_all(self, dt, y, dydt, out)
        return _default_scale_all(dt, y, dydt, out)

    def norm(self, err):
        if not _uses_own(self, RmsNorm, "reduce", "post"):
            return ErrorNorm.norm(self, err)
        return float(np.sqrt(np.mean(np.square(err))))


class CallableErrorNorm(ErrorNorm):
    """
    Error norm assembled from user callables.

    Any of the three may be omitted, in which case the default
    (infinity norm) function is used for that operation.
    """

    def __init__(
        self,
        scale: Callable | None = None,
        reduce: Callable | None = None,
        post: Callable | None = None,
    ):
        self._scale = scale or default_error_scale
        self._reduce = reduce or default_error_reduce
        self._post = post or default_error_post

    def scale(self, i, dt, y, dydt):
        return self._scale(i, dt, y, dydt)

    def reduce(self, i, acc, err):
        return self._reduce(i, acc, err)

    def post(self, acc):
        return self._post(acc)

    def __repr__(self):
        names = [getattr(f, "__name__", repr(f))
                 for f in (self._scale, self._reduce, self._post)]
        return "CallableErrorNorm(scale=%s, reduce=%s, post=%s)" % tuple(names)
