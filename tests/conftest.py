"""Shared fixtures.

The worker modules need ``PySide6.QtCore``.  When Qt is not installed a
minimal stand-in providing ``QThread`` and ``Signal`` is registered so the
worker logic can still be exercised without an event loop.
"""

from __future__ import annotations

import sys
import types

import pytest

try:
    import PySide6.QtCore  # noqa: F401
except ImportError:  # pragma: no cover - depends on the environment

    class _DummySignal:
        def __init__(self, *_, **__):
            self._subs: list[object] = []

        def __set_name__(self, owner, name):
            self._name = name

        def __get__(self, obj, objtype=None):
            if obj is None:
                return self
            bound = obj.__dict__.get(self._name)
            if bound is None:
                bound = obj.__dict__[self._name] = _DummySignal()
            return bound

        def connect(self, func):
            self._subs.append(func)

        def emit(self, *args, **kwargs):
            for func in self._subs:
                func(*args, **kwargs)

    class _DummyQThread:
        def __init__(self, *_, **__):
            pass

        def start(self) -> None:
            pass

        def wait(self, *_: object) -> bool:
            return True

    qt_core = types.SimpleNamespace(
        QThread=_DummyQThread, QObject=object, Signal=_DummySignal
    )
    sys.modules["PySide6"] = types.SimpleNamespace(QtCore=qt_core)
    sys.modules["PySide6.QtCore"] = qt_core


class FakeContext:
    """Records graph operations and runs deferred callbacks on demand."""

    def __init__(self) -> None:
        self.current_time = 0.0
        self.destination = "destination"
        self.oscillators: list[dict] = []
        self.gains: list[dict] = []
        self.links: dict[int, object] = {}
        self.stopped: list[dict] = []
        self.pending: list[tuple[float, object]] = []

    def create_oscillator(self, frequency, wave_shape):
        osc = {"frequency": frequency, "shape": wave_shape, "started": False}
        self.oscillators.append(osc)
        return osc

    def create_gain(self, level):
        gain = {"level": level, "ramps": []}
        self.gains.append(gain)
        return gain

    def connect(self, source, target):
        self.links[id(source)] = target

    def disconnect(self, source):
        self.links.pop(id(source), None)

    def ramp_gain(self, gain, target, end_time):
        gain["ramps"].append((target, end_time))

    def set_wave_shape(self, oscillator, wave_shape):
        oscillator["shape"] = wave_shape

    def start(self, oscillator):
        oscillator["started"] = True

    def stop(self, oscillator):
        self.stopped.append(oscillator)

    def call_later(self, delay, callback):
        self.pending.append((self.current_time + delay, callback))

    def advance(self, seconds: float) -> None:
        self.current_time += seconds
        due = [p for p in self.pending if p[0] <= self.current_time + 1e-9]
        self.pending = [p for p in self.pending if p not in due]
        for _, callback in due:
            callback()


@pytest.fixture
def ctx() -> FakeContext:
    return FakeContext()
