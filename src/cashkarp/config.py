"""
Configuration for the adaptive Cash-Karp integrator.

All options are validated once, at construction; the integrator treats
its configuration as immutable afterwards.
"""

from dataclasses import dataclass, field, fields, replace

from .errornorms import CallableErrorNorm, ErrorNorm, MaxNorm


@dataclass(frozen=True)
class IntegratorConfig:
    """
    Step-controller settings.

    Attributes
    ----------
    tol : float
        Error tolerance; a step is accepted when the error norm is
        strictly below it.
    safety_factor : float
        Multiplier applied to every power-law step prediction.
    max_increase_factor : float
        Largest growth of ``dt`` from one step to the next.
    max_decrease_factor : float
        Largest shrink of ``dt`` per retry and from one step to the next.
    dt_min_mag : float
        Smallest step magnitude; ``0`` disables the floor.  Steps forced
        to this size are taken even when they miss the tolerance.
    dt_max_mag : float or None
        Largest step magnitude; ``None`` disables the ceiling.
    verbose : bool
        Emit controller warnings (clamping, forced steps).
    max_log_messages : int
        Warnings emitted per integrator before output is silenced.
    error_norm : ErrorNorm
        Scale/reduce/post strategy for the error estimate.
    """

    tol: float = 1.0e-8
    safety_factor: float = 0.9
    max_increase_factor: float = 10.0
    max_decrease_factor: float = 10.0
    dt_min_mag: float = 0.0
    dt_max_mag: float | None = None
    verbose: bool = True
    max_log_messages: int = 10
    error_norm: ErrorNorm = field(default_factory=MaxNorm)

    def __post_init__(self):
        if not self.tol > 0.0:
            raise ValueError(f"tol must be positive, got {self.tol!r}")
        if not 0.0 < self.safety_factor <= 1.0:
            raise ValueError(
                f"safety_factor must be in (0, 1], got {self.safety_factor!r}"
            )
        if not self.max_increase_factor >= 1.0:
            raise ValueError(
                f"max_increase_factor must be >= 1, got {self.max_increase_factor!r}"
            )
        if not self.max_decrease_factor >= 1.0:
            raise ValueError(
                f"max_decrease_factor must be >= 1, got {self.max_decrease_factor!r}"
            )
        if self.max_log_messages < 0:
            raise ValueError(
                f"max_log_messages must be >= 0, got {self.max_log_messages!r}"
            )
        if not isinstance(self.error_norm, ErrorNorm):
            raise TypeError(
                f"error_norm must be an ErrorNorm, got {type(self.error_norm).__name__}"
            )

        # Only magnitudes matter; the sign always comes from dt.
        object.__setattr__(self, "dt_min_mag", abs(float(self.dt_min_mag)))
        if self.dt_max_mag is not None:
            object.__setattr__(self, "dt_max_mag", abs(float(self.dt_max_mag)))
            if self.dt_max_mag == 0.0:
                raise ValueError("dt_max_mag must be nonzero")
            if self.dt_max_mag < self.dt_min_mag:
                raise ValueError(
                    f"dt_max_mag ({self.dt_max_mag}) is smaller than "
                    f"dt_min_mag ({self.dt_min_mag})"
                )

    @classmethod
    def from_options(cls, base=None, **options):
        """
        Build a config from keyword options.

        ``error_scale``, ``error_reduce`` and ``error_post`` callables are
        bundled into a :class:`CallableErrorNorm`; every other keyword must
        name a field.  Options override the fields of *base* when given.
        """
        hooks = {
            key: options.pop(f"error_{key}", None)
            for key in ("scale", "reduce", "post")
        }
        if any(f is not None for f in hooks.values()):
            if "error_norm" in options:
                raise ValueError(
                    "pass either error_norm or error_scale/error_reduce/error_post"
                )
            options["error_norm"] = CallableErrorNorm(**hooks)

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise TypeError(f"unknown integrator option(s): {', '.join(unknown)}")

        if base is None:
            return cls(**options)
        return replace(base, **options)
