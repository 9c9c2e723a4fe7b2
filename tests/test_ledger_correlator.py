import threading
import time

import pytest

from log4scan.catchers.base import Catcher
from log4scan.core.correlator import Correlator
from log4scan.core.ledger import AttemptLedger, DuplicateMarkerError
from log4scan.core.models import (
    CallbackEvent, InjectionPoint, PayloadVariant, ProbeAttempt,
    SENT, CONFIRMED, UNCONFIRMED, TRANSPORT_ERROR, SENT_UNCONFIRMED, GET, HEADER,
)

POINT = InjectionPoint(GET, HEADER, "X-Api-Version")


def _attempt(marker, sent_at=None):
    return ProbeAttempt(target="http://example.test/", point=POINT,
                        variant=PayloadVariant(marker, f"${{jndi:dns://h/{marker}.l4s}}"),
                        sent_at=time.time() if sent_at is None else sent_at)


def _event(marker, observed_at=None):
    return CallbackEvent(marker=marker, observed_at=time.time() if observed_at is None else observed_at,
                         catcher_kind="dns", remote_addr="192.0.2.7")


def test_duplicate_marker_rejected():
    ledger = AttemptLedger()
    ledger.add(_attempt("a" * 32))
    with pytest.raises(DuplicateMarkerError):
        ledger.add(_attempt("a" * 32))


def test_transport_error_outcome():
    ledger = AttemptLedger()
    ledger.add(_attempt("a" * 32))
    ledger.record_outcome("a" * 32, error="ConnectError: refused")
    assert ledger.get("a" * 32).state == TRANSPORT_ERROR


def test_callback_before_response_stays_confirmed():
    ledger = AttemptLedger()
    attempt = _attempt("a" * 32)
    ledger.add(attempt)
    assert ledger.confirm(attempt.marker, time.time(), "ldap", 5) is attempt
    ledger.record_outcome(attempt.marker, status_code=200)
    assert attempt.state == CONFIRMED
    assert attempt.status_code == 200


def test_confirm_only_once():
    ledger = AttemptLedger()
    ledger.add(_attempt("a" * 32))
    assert ledger.confirm("a" * 32, time.time(), "dns", 5) is not None
    assert ledger.confirm("a" * 32, time.time(), "dns", 5) is None


def test_expire_pending():
    ledger = AttemptLedger()
    ledger.add(_attempt("a" * 32))
    ledger.add(_attempt("b" * 32))
    ledger.record_outcome("b" * 32, error="boom")
    assert ledger.expire_pending() == 1
    assert ledger.get("a" * 32).state == UNCONFIRMED
    assert ledger.get("b" * 32).state == TRANSPORT_ERROR


def test_concurrent_adds():
    ledger = AttemptLedger()
    threads = [threading.Thread(target=lambda i=i: ledger.add(_attempt(f"{i:032x}")))
               for i in range(64)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(ledger) == 64


def test_callback_inside_window_confirms(log):
    ledger = AttemptLedger()
    ledger.add(_attempt("a" * 32))
    correlator = Correlator(ledger, Catcher(), wait=5, logger=log)
    assert correlator.handle_event(_event("a" * 32))
    assert ledger.get("a" * 32).state == CONFIRMED
    assert "Log4Shell confirmed" in log.stream.getvalue()


def test_unknown_marker_is_dropped(log):
    ledger = AttemptLedger()
    ledger.add(_attempt("a" * 32))
    correlator = Correlator(ledger, Catcher(), wait=5, logger=log)
    assert not correlator.handle_event(_event("f" * 32))
    assert correlator.dropped == 1
    assert ledger.get("a" * 32).state == SENT


def test_late_callback_is_dropped():
    ledger = AttemptLedger()
    sent_at = time.time() - 10
    ledger.add(_attempt("a" * 32, sent_at=sent_at))
    correlator = Correlator(ledger, Catcher(), wait=5)
    assert not correlator.handle_event(_event("a" * 32))
    assert ledger.get("a" * 32).state == SENT


def test_no_wait_timeout_has_no_deadline():
    ledger = AttemptLedger()
    ledger.add(_attempt("a" * 32, sent_at=time.time() - 3600))
    correlator = Correlator(ledger, Catcher(), wait=5, no_wait_timeout=True)
    assert correlator.handle_event(_event("a" * 32))


def test_finalize(fake_catcher):
    ledger = AttemptLedger()
    ledger.add(_attempt("a" * 32))
    ledger.add(_attempt("b" * 32))
    correlator = Correlator(ledger, fake_catcher, wait=5)
    correlator.handle_event(_event("b" * 32))
    results = correlator.finalize()
    assert [r.state for r in results] == [CONFIRMED, SENT_UNCONFIRMED]
    assert results[0].marker == "b" * 32


def test_drain_thread(fake_catcher):
    ledger = AttemptLedger()
    ledger.add(_attempt("a" * 32))
    correlator = Correlator(ledger, fake_catcher, wait=5).start()
    fake_catcher.emit("a" * 32, "192.0.2.7")
    fake_catcher.stop()
    correlator.join(timeout=5)
    assert correlator.confirmed == 1


def test_wait_returns_without_active_catcher():
    ledger = AttemptLedger()
    ledger.add(_attempt("a" * 32))
    correlator = Correlator(ledger, Catcher(), wait=60)
    start = time.monotonic()
    correlator.wait_for_callbacks(threading.Event())
    assert time.monotonic() - start < 1


def test_wait_ends_on_stop_event(fake_catcher):
    ledger = AttemptLedger()
    ledger.add(_attempt("a" * 32))
    correlator = Correlator(ledger, fake_catcher, no_wait_timeout=True)
    stop = threading.Event()
    threading.Timer(0.2, stop.set).start()
    start = time.monotonic()
    correlator.wait_for_callbacks(stop)
    assert time.monotonic() - start < 5
