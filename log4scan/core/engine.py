import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Iterable, List, Optional

import httpx

from log4scan.core.config import ScanOptions
from log4scan.core.ledger import AttemptLedger
from log4scan.core.models import (
    InjectionPoint, ProbeAttempt, GET, POST, HEADER, QUERY, FIELD, FIXED,
)
from log4scan.core.payload import PayloadGenerator
from log4scan.core.surface import enumerate_injection_points
from log4scan.handlers.base import HandlerContext, HandlerRegistry
from log4scan.handlers.form_submit import FormSubmitHandler
from log4scan.handlers.unauthorized import UnauthorizedHandler

PAYLOAD_PLACEHOLDER = "{{payload}}"

_DEFAULT_HDRS = {
    "User-Agent": "log4scan",
    "Accept": "*/*",
}

# Response bytes read per probe; handlers see at most this much.
MAX_BODY = 1024 * 1024

# iter_bytes() already decoded the body
_BODY_HDRS = {"content-encoding", "content-length", "transfer-encoding"}


def render_value(point: InjectionPoint, payload: str) -> str:
    """Value planted at ``point``: the payload, or the fixed value with it."""
    if point.value_source != FIXED:
        return payload
    if PAYLOAD_PLACEHOLDER in point.fixed_value:
        return point.fixed_value.replace(PAYLOAD_PLACEHOLDER, payload)
    return point.fixed_value + payload


def buffered(response: httpx.Response, body: bytes) -> httpx.Response:
    """A closed, in-memory copy of a streamed response holding ``body``."""
    headers = [(k, v) for k, v in response.headers.multi_items()
               if k.lower() not in _BODY_HDRS]
    return httpx.Response(response.status_code, headers=headers, content=body,
                          request=response.request)


class Engine:
    """Probe executor: one request per (target, injection point, payload)."""

    def __init__(self, options: ScanOptions, logger=None, transport: Optional[httpx.BaseTransport] = None,
                 ledger: Optional[AttemptLedger] = None, registry: Optional[HandlerRegistry] = None):
        self.name = "log4scan"
        self.options = options
        self.logger = logger
        self.generator = PayloadGenerator.from_options(options)
        self.ledger = ledger if ledger is not None else AttemptLedger()
        self.client = self._build_client(transport)
        self.form_pool = ThreadPoolExecutor(max_workers=options.max_form_threads,
                                            thread_name_prefix="form")
        self.registry = registry if registry is not None else self._default_registry()
        self._stop = threading.Event()
        self._executor: Optional[ThreadPoolExecutor] = None

    def _build_client(self, transport) -> httpx.Client:
        opts = self.options
        kwargs = dict(
            verify=False,
            follow_redirects=not opts.no_redirect,
            timeout=opts.timeout,
            headers=_DEFAULT_HDRS,
            auth=httpx.BasicAuth(*opts.basic_auth) if opts.basic_auth else None,
        )
        if transport is not None:
            kwargs["transport"] = transport
        elif opts.proxy:
            kwargs["proxy"] = opts.proxy
        return httpx.Client(**kwargs)

    def _default_registry(self) -> HandlerRegistry:
        registry = HandlerRegistry()
        if self.options.auth_fuzzing:
            registry.register(UnauthorizedHandler())
        if self.options.form_fuzzing:
            registry.register(FormSubmitHandler(self.form_pool))
        return registry

    def _debug(self, msg: str):
        if self.logger:
            self.logger.debug(msg)

    # ---------- request construction ----------
    def build_request(self, target: str, point: InjectionPoint, payload: str) -> httpx.Request:
        value = render_value(point, payload)
        headers = {}
        if point.surface == HEADER:
            headers[point.name] = value

        if point.request_type == GET:
            params = {point.name: value} if point.surface == QUERY else None
            return self.client.build_request("GET", target, headers=headers, params=params)

        body = {point.name: value} if point.surface == FIELD else {}
        if point.request_type == POST:
            if body:
                return self.client.build_request("POST", target, headers=headers, data=body)
            headers["Content-Type"] = "application/x-www-form-urlencoded"
            return self.client.build_request("POST", target, headers=headers, content=b"")
        return self.client.build_request("POST", target, headers=headers, json=body)
    # -------------------------------------------

    def probe(self, target: str, point: InjectionPoint, template: str,
              obfuscated: bool = False) -> Optional[ProbeAttempt]:
        """Send one probe. Transport failures are recorded, never raised."""
        if self._stop.is_set():
            return None

        variant = self.generator.variant(template, obfuscated)
        attempt = ProbeAttempt(target=target, point=point, variant=variant, sent_at=time.time())
        self.ledger.add(attempt)

        try:
            request = self.build_request(target, point, variant.text)
        except (httpx.InvalidURL, UnicodeEncodeError, ValueError) as exc:
            self.ledger.record_outcome(variant.marker, error=f"invalid request: {exc}")
            self._debug(f"Cannot build request for {target} {point}: {exc}")
            return attempt

        if self.logger and self.logger.verbose >= 2:
            self._debug(f"→ {request.method} {request.url} {point} = "
                        f"{self.logger.PAY}{variant.text}{self.logger.RESET}")

        deadline = time.monotonic() + self.options.timeout
        try:
            response = self.client.send(request, stream=True)
        except httpx.HTTPError as exc:
            self.ledger.record_outcome(variant.marker, error=f"{type(exc).__name__}: {exc}")
            self._debug(f"Request to {target} failed: {type(exc).__name__}: {exc}")
            return attempt

        try:
            dispatch = len(self.registry) > 0 and not self._stop.is_set()
            try:
                body = self._read_body(response, deadline, keep=dispatch)
            except httpx.HTTPError as exc:
                self.ledger.record_outcome(variant.marker, status_code=response.status_code,
                                           error=f"{type(exc).__name__}: {exc}")
                self._debug(f"Reading response from {target} failed: {type(exc).__name__}: {exc}")
                return attempt

            self.ledger.record_outcome(variant.marker, status_code=response.status_code)
            if dispatch:
                self.registry.dispatch(HandlerContext(
                    client=self.client, request=request, response=buffered(response, body),
                    payload=variant.text, attempt=attempt, target=target, log=self.logger,
                ))
        finally:
            response.close()
        return attempt

    def _read_body(self, response: httpx.Response, deadline: float, keep: bool) -> bytes:
        """Read at most MAX_BODY bytes, kept only for handlers.

        The whole request shares one deadline; a body still arriving past it
        raises ReadTimeout.
        """
        chunks = []
        size = 0
        for chunk in response.iter_bytes():
            if time.monotonic() > deadline:
                raise httpx.ReadTimeout(
                    f"response not complete within {self.options.timeout}s",
                    request=response.request)
            size += len(chunk)
            if keep:
                chunks.append(chunk)
            if size >= MAX_BODY:
                break
        return b"".join(chunks)[:MAX_BODY]

    def work_items(self, targets: Iterable[str]) -> List[tuple]:
        points = enumerate_injection_points(self.options)
        templates = self.generator.templates()
        return [(target, point, template, obfuscated)
                for target in targets
                for point in points
                for template, obfuscated in templates]

    def run(self, targets: Iterable[str], timeout: Optional[float] = None) -> List[ProbeAttempt]:
        """Probe every target under the worker pool.

        ``timeout`` is a scan-level deadline; when it passes, pending work
        is cancelled and in-flight requests finish within the request
        timeout.
        """
        targets = list(targets)
        work = self.work_items(targets)
        if self.logger:
            self.logger.info(f"Sending {len(work)} requests to {len(targets)} target(s) "
                             f"with {self.options.max_threads} threads")

        executor = ThreadPoolExecutor(max_workers=self.options.max_threads,
                                      thread_name_prefix="probe")
        self._executor = executor
        try:
            futures = [executor.submit(self.probe, *item) for item in work]
            _, pending = wait(futures, timeout=timeout)
            if pending:
                if self.logger:
                    self.logger.warn("Scan deadline reached, cancelling pending requests")
                self.cancel()
        except KeyboardInterrupt:
            self.cancel()
            raise
        finally:
            executor.shutdown(wait=True)
            self._executor = None

        attempts = []
        for future in futures:
            if future.cancelled():
                continue
            attempt = future.result()
            if attempt is not None:
                attempts.append(attempt)
        return attempts

    def cancel(self):
        self._stop.set()
        executor = self._executor
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def close(self):
        self.form_pool.shutdown(wait=True, cancel_futures=True)
        self.client.close()
