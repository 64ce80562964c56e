"""
cashkarp: adaptive Cash-Karp Runge-Kutta integration of first-order ODE systems.

An embedded 5(4) Runge-Kutta pair estimates the local truncation error of
every step; the step controller rejects steps that miss the tolerance and
adapts the step size for the next one.
"""

# Import modules themselves (allows: from cashkarp import integrator)
from . import config
from . import drivers
from . import errornorms
from . import integrator
from . import logger

from .config import IntegratorConfig
from .errornorms import CallableErrorNorm, ErrorNorm, MaxNorm, RmsNorm
from .integrator import (
    Integrator,
    NumericalInstabilityError,
    StepSizeUnderflowError,
    StepStatus,
    rkck,
)

__all__ = [
    "config",
    "drivers",
    "errornorms",
    "integrator",
    "logger",
    "CallableErrorNorm",
    "ErrorNorm",
    "Integrator",
    "IntegratorConfig",
    "MaxNorm",
    "NumericalInstabilityError",
    "RmsNorm",
    "StepSizeUnderflowError",
    "StepStatus",
    "rkck",
]
