"""
Tests for cashkarp.logger and the integrator's diagnostics.
"""

import io
import logging
import math

import numpy as np
import pytest

from cashkarp import logger as L
from cashkarp.integrator import Integrator


def _fast_oscillation(dydt, y, t):
    dydt[0] = math.cos(1.0e5 * y[0])


def _warnings(caplog):
    return [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]


class TestLogger:
    def test_hierarchy(self):
        root = L.get_logger()
        log = L.get_logger("cashkarp.integrator")
        assert log.parent is root

    def test_debug_levels(self):
        buf = io.StringIO()
        log = L.get_logger("cashkarp.test_debug_levels")
        handler = logging.StreamHandler(buf)
        log.addHandler(handler)
        log.setLevel(L.DEBUG3)
        try:
            log.debug2("debug2 message")
            log.debug3("debug3 message")
        finally:
            log.removeHandler(handler)
        out = buf.getvalue()
        assert "debug2 message" in out
        assert "debug3 message" in out
        assert logging.getLevelName(L.DEBUG2) == "DEBUG2"

    def test_set_level(self):
        root = L.get_logger()
        old = root.level
        try:
            L.set_level(logging.ERROR)
            assert root.level == logging.ERROR
            L.set_level("DEBUG3")
            assert root.level == L.DEBUG3
        finally:
            root.setLevel(old)


class TestRateLimitedLog:
    def test_cap_then_single_notice(self, caplog):
        caplog.set_level(logging.WARNING, logger="cashkarp")
        sink = L.RateLimitedLog(L.get_logger("cashkarp.sink"), max_messages=3)
        for i in range(10):
            sink("step", f"message {i}")
        msgs = _warnings(caplog)
        assert msgs[:3] == [f"cashkarp::step(): message {i}" for i in range(3)]
        assert msgs[3] == "cashkarp: too many warnings. Silencing further output"
        assert len(msgs) == 4

    def test_disabled(self, caplog):
        caplog.set_level(logging.WARNING, logger="cashkarp")
        sink = L.RateLimitedLog(max_messages=3, enabled=False)
        sink("step", "hidden")
        assert _warnings(caplog) == []


class TestIntegratorDiagnostics:
    def test_min_step_warning(self, caplog):
        caplog.set_level(logging.WARNING, logger="cashkarp")
        integ = Integrator(np.array([0.0]), _fast_oscillation, 0.0, 1.0,
                           dt_min_mag=1e-4)
        integ.step()
        assert "cashkarp::step(): minimum stepsize reached." in _warnings(caplog)

    def test_each_integrator_has_its_own_cap(self, caplog):
        caplog.set_level(logging.WARNING, logger="cashkarp")
        opts = dict(dt_min_mag=1e-4, max_log_messages=1)
        i1 = Integrator(np.array([0.0]), _fast_oscillation, 0.0, 1.0, **opts)
        i1.steps(5)
        first = len(_warnings(caplog))
        assert first == 2
        i2 = Integrator(np.array([0.0]), _fast_oscillation, 0.0, 1.0, **opts)
        i2.step()
        assert len(_warnings(caplog)) > first

    def test_quiet(self, caplog):
        caplog.set_level(logging.WARNING, logger="cashkarp")
        integ = Integrator(np.array([0.0]), _fast_oscillation, 0.0, 1.0,
                           dt_min_mag=1e-4, verbose=False)
        integ.steps(3)
        assert _warnings(caplog) == []

    def test_injected_logger(self):
        buf = io.StringIO()
        log = logging.getLogger("custom.integrator.sink")
        log.propagate = False
        log.addHandler(logging.StreamHandler(buf))
        integ = Integrator(np.array([0.0]), _fast_oscillation, 0.0, 1.0,
                           dt_min_mag=1e-4, logger=log)
        integ.step()
        assert "minimum stepsize reached" in buf.getvalue()

    def test_rejections_traced_at_debug2(self, caplog):
        caplog.set_level(L.DEBUG2, logger="cashkarp")
        integ = Integrator(np.array([1.0]), lambda dydt, y, t: -y, 0.0, 10.0)
        integ.step()
        traced = [r for r in caplog.records if r.levelno == L.DEBUG2]
        assert len(traced) == integ.nbad > 0

    def test_accepted_steps_traced_at_debug3(self, caplog):
        caplog.set_level(L.DEBUG3, logger="cashkarp")
        integ = Integrator(np.array([1.0]), lambda dydt, y, t: -y, 0.0, 0.01)
        integ.steps(3)
        accepted = [r for r in caplog.records if r.levelno == L.DEBUG3]
        assert len(accepted) == integ.nok == 3
        assert accepted[0].getMessage().startswith("accepted h=0.01,")

    @pytest.mark.parametrize("level", [logging.INFO, "DEBUG"])
    def test_setup_is_idempotent(self, level):
        root = L.get_logger()
        before = list(root.handlers)
        old = root.level
        try:
            L.setup(level, stream=io.StringIO())
            n = len(root.handlers)
            L.setup(level, stream=io.StringIO())
            assert len(root.handlers) == n
        finally:
            for h in root.handlers[:]:
                if h not in before:
                    root.removeHandler(h)
            root.setLevel(old)
