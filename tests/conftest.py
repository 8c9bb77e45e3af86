import threading

import numpy as np
import pytest

from moodcam.config import Settings
from moodcam.loader import ModelLoadError
from moodcam.models import Detection, Point, Region


class FakeCamera:
    def __init__(self, width=640, height=480, is_open=True):
        self.is_open = is_open
        self.frame = np.zeros((height, width, 3), dtype=np.uint8)
        self.reads = 0
    def open(self):
        self.is_open = True
    def read(self):
        self.reads += 1
        return self.frame
    def release(self):
        self.is_open = False


class FakeModel:
    """Scripted detect(): responses[i] is a detection list or an exception; gates[i] blocks call i."""
    def __init__(self, responses=None, gates=None):
        self.responses = responses if responses is not None else [[]]
        self.gates = gates or {}
        self.calls = 0
        self._lock = threading.Lock()
    def detect(self, frame):
        with self._lock:
            idx = self.calls
            self.calls += 1
        if idx in self.gates:
            self.gates[idx].wait(timeout=2)
        resp = self.responses[min(idx, len(self.responses) - 1)]
        if isinstance(resp, Exception):
            raise resp
        return resp


class FakeLoader:
    def __init__(self, model=None, error=None):
        self.model = model
        self.error = error
        self.calls = 0
    async def load(self, base_url):
        self.calls += 1
        if self.error is not None:
            raise ModelLoadError(self.error)
        return self.model


class FakeCanvas:
    def __init__(self):
        self.updates = []
    def update(self, result):
        self.updates.append(result)


def make_detection(expressions, x=10, y=20, w=100, h=120):
    return Detection(
        region=Region(x=x, y=y, w=w, h=h),
        landmarks=[Point(x=x + 10, y=y + 10), Point(x=x + 50, y=y + 60)],
        expressions=expressions,
    )


@pytest.fixture
def settings():
    return Settings(DETECT_INTERVAL=0.01)

@pytest.fixture
def camera():
    return FakeCamera()

@pytest.fixture
def canvas():
    return FakeCanvas()
