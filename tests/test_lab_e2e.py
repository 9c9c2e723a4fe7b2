"""End to end: scanner against the vulnerable lab with real catchers."""

import httpx
import pytest

from log4scan.catchers.registry import start_catcher
from log4scan.core.config import ScanOptions
from log4scan.core.models import CONFIRMED, GET, POST
from log4scan.core.scanner import Scanner
from vuln_lab.app import app, interpolate

LAB = "http://lab.test"


@pytest.fixture(params=["dns", "ldap"])
def kind(request):
    return request.param


def _scan(kind, log, path, **overrides):
    # the scanner stops the catcher when it finishes
    catcher = start_catcher(kind, "127.0.0.1:0", "l4s")
    host, port = catcher.address
    values = dict(caddr=f"{host}:{port}", catcher_type=kind,
                  max_threads=4, max_form_threads=2, timeout=5.0, wait=1.0)
    values.update(overrides)
    scanner = Scanner(ScanOptions(**values), log,
                      transport=httpx.WSGITransport(app=app), catcher=catcher)
    return scanner.run([LAB + path])


def _confirmed(results):
    return [r for r in results if r.state == CONFIRMED]


def test_interpolate_lookups():
    calls = []
    assert interpolate("a ${lower:B}${upper:c} ${env:NOPE:-d}", calls.append) == "a bC d"
    interpolate("${${::-j}ndi:ldap://h/x}", calls.append)
    assert calls == ["ldap://h/x"]


def test_every_logged_header_is_confirmed(kind, log):
    results = _scan(kind, log, "/")
    assert len(results) == 11
    assert len(_confirmed(results)) == 11


def test_patched_endpoint_has_no_findings(kind, log):
    results = _scan(kind, log, "/safe", request_types=(GET, POST))
    assert results
    assert _confirmed(results) == []


def test_waf_bypass_payloads_confirm(kind, log):
    results = _scan(kind, log, "/login", headers=("X-Api-Version",),
                    no_user_agent_fuzzing=True, waf_bypass=True, check_cve_2021_45046=True)
    assert len(results) == 11
    assert len(_confirmed(results)) == 11


def test_auth_fuzzing_basic(kind, log):
    results = _scan(kind, log, "/admin", headers=("Referer",), no_user_agent_fuzzing=True)
    assert _confirmed(results) == []

    results = _scan(kind, log, "/admin", headers=("Referer",), no_user_agent_fuzzing=True,
                    auth_fuzzing=True)
    assert len(_confirmed(results)) == 1
    assert _confirmed(results)[0].point.name == "Referer"


def test_auth_fuzzing_bearer(kind, log):
    results = _scan(kind, log, "/api", headers=("Referer",), no_user_agent_fuzzing=True,
                    auth_fuzzing=True)
    assert len(_confirmed(results)) == 1


def test_form_fuzzing(kind, log):
    results = _scan(kind, log, "/portal", headers=("Referer",), no_user_agent_fuzzing=True)
    assert _confirmed(results) == []

    results = _scan(kind, log, "/portal", headers=("Referer",), no_user_agent_fuzzing=True,
                    form_fuzzing=True)
    assert len(_confirmed(results)) == 1
