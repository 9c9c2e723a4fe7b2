"""Secondary handlers: follow-up probes chained off a completed response."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import httpx

from log4scan.core.models import ProbeAttempt

# Hop-by-hop and body-describing headers that must not be copied onto a
# request with a different body.
_STOP_HDRS = {"host", "content-length", "content-type", "transfer-encoding"}


@dataclass
class HandlerContext:
    client: httpx.Client
    request: httpx.Request      # the original probe request
    response: httpx.Response
    payload: str
    attempt: ProbeAttempt
    target: str
    log: object = None

    def debug(self, msg: str):
        if self.log:
            self.log.debug(msg)


class Handler(ABC):
    """A condition on a response plus the follow-up it triggers.

    Handlers reuse the parent attempt's payload, so a callback caused by a
    follow-up still attributes to the parent marker. They may run
    concurrently for different responses and must not keep per-call state.
    """

    name: str = "Unnamed Handler"

    # ── public API ──────────────────────────────────────────────

    @abstractmethod
    def matches(self, response: httpx.Response) -> bool:
        ...

    @abstractmethod
    def handle(self, ctx: HandlerContext) -> int:
        """Issue the follow-up requests. Return how many were sent."""
        ...

    # ── shared helpers ──────────────────────────────────────────

    @staticmethod
    def clone(client: httpx.Client, request: httpx.Request) -> httpx.Request:
        return client.build_request(request.method, request.url,
                                    headers=request.headers, content=request.content)

    @staticmethod
    def carry_headers(request: httpx.Request) -> dict:
        return {k: v for k, v in request.headers.items() if k.lower() not in _STOP_HDRS}


class HandlerRegistry:
    """Ordered table of handlers evaluated against every response."""

    def __init__(self, handlers: Optional[List[Handler]] = None):
        self.handlers: List[Handler] = list(handlers or [])

    def __len__(self):
        return len(self.handlers)

    def register(self, handler: Handler) -> "HandlerRegistry":
        self.handlers.append(handler)
        return self

    def dispatch(self, ctx: HandlerContext) -> int:
        """Run every matching handler in registration order.

        Failures inside a handler never reach the scan; they are logged
        at debug level.
        """
        sent = 0
        for handler in self.handlers:
            try:
                if not handler.matches(ctx.response):
                    continue
                sent += handler.handle(ctx) or 0
            except Exception as exc:
                ctx.debug(f"{handler.name} failed for {ctx.request.url}: {exc}")
        return sent
