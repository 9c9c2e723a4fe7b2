"""Scan orchestration: catcher, engine and correlator for one run."""

import threading
from typing import Iterable, List, Optional

import httpx

from log4scan.catchers.base import Catcher
from log4scan.catchers.registry import start_catcher
from log4scan.core.config import ScanOptions
from log4scan.core.correlator import Correlator
from log4scan.core.engine import Engine
from log4scan.core.models import ScanResult


class Scanner:
    """Runs one scan.

    The catcher is started before the first request and stopped after the
    wait window (or on abort). A catcher that cannot bind raises
    CatcherError before anything is sent.
    """

    def __init__(self, options: ScanOptions, logger=None,
                 transport: Optional[httpx.BaseTransport] = None,
                 catcher: Optional[Catcher] = None):
        # an injected catcher must already be started
        self.options = options
        self.logger = logger
        self.transport = transport
        self.catcher = catcher
        self.engine: Optional[Engine] = None
        self.correlator: Optional[Correlator] = None
        self._stop = threading.Event()
        self._results: Optional[List[ScanResult]] = None

    def run(self, targets: Iterable[str], timeout: Optional[float] = None) -> List[ScanResult]:
        opts = self.options
        if self.catcher is None:
            self.catcher = start_catcher(opts.catcher_type, opts.caddr, opts.resource, self.logger)

        self.engine = Engine(opts, self.logger, transport=self.transport)
        self.correlator = Correlator(self.engine.ledger, self.catcher, opts.wait,
                                     opts.no_wait_timeout, self.logger).start()
        try:
            self.engine.run(targets, timeout=timeout)
            if not self._stop.is_set():
                self.correlator.wait_for_callbacks(self._stop)
        finally:
            self.shutdown()
        return self.results()

    def abort(self):
        """Interrupt: cancel pending probes and end the wait window."""
        self._stop.set()
        if self.engine is not None:
            self.engine.cancel()

    def shutdown(self):
        if self.catcher is not None:
            self.catcher.stop()
        if self.correlator is not None:
            self.correlator.join(timeout=5)
        if self.engine is not None:
            self.engine.close()

    def results(self) -> List[ScanResult]:
        if self._results is None:
            self._results = self.correlator.finalize() if self.correlator else []
        return self._results
