import io
import threading

import httpx
import pytest

from log4scan.catchers.base import Catcher
from log4scan.core.config import ScanOptions
from log4scan.reporters.console import Log


class Recorder:
    """MockTransport handler that keeps every request it sees."""

    def __init__(self, handler=None):
        self.requests = []
        self.handler = handler or (lambda request: httpx.Response(200, text="ok"))
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        with self._lock:
            self.requests.append(request)
        return self.handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def to_host(self, host):
        return [r for r in self.requests if r.url.host == host]


class FakeCatcher(Catcher):
    """An active catcher fed by the test through ``emit``."""

    kind = "dns"
    active = True


@pytest.fixture
def make_options():
    def factory(**overrides):
        values = dict(caddr="10.0.0.5:53", catcher_type="dns", max_threads=4,
                      max_form_threads=2, timeout=2.0, wait=5.0)
        values.update(overrides)
        return ScanOptions(**values)
    return factory


@pytest.fixture
def log():
    return Log(verbose=2, no_color=True, stream=io.StringIO())


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def make_recorder():
    return Recorder


@pytest.fixture
def fake_catcher():
    catcher = FakeCatcher("10.0.0.5:53", "l4s")
    yield catcher
    catcher.stop()
