"""Shared data models for the Log4Shell scanner."""

from dataclasses import dataclass
from typing import Optional


# Request types
GET = "get"
POST = "post"
JSON = "json"
REQUEST_TYPES = (GET, POST, JSON)

# Injection surfaces
HEADER = "header"
QUERY = "query"
FIELD = "field"

# Value sources
WORDLIST = "wordlist"
FIXED = "fixed"

# Attempt states
SENT = "sent"
CONFIRMED = "confirmed"
UNCONFIRMED = "unconfirmed"
TRANSPORT_ERROR = "transport-error"

# Result states
SENT_UNCONFIRMED = "sent-unconfirmed"


@dataclass(frozen=True)
class InjectionPoint:
    """A place in an outgoing request where the payload is planted."""
    request_type: str      # "get", "post", "json"
    surface: str           # "header", "query", "field"
    name: str
    value_source: str = WORDLIST
    fixed_value: str = ""

    @property
    def key(self):
        return (self.request_type, self.surface, self.name.lower()
                if self.surface == HEADER else self.name)

    def __str__(self):
        return f"{self.request_type}:{self.surface}.{self.name}"


@dataclass(frozen=True)
class PayloadVariant:
    marker: str
    text: str
    obfuscated: bool = False


@dataclass
class ProbeAttempt:
    """One request sent with one marker. Owned by its worker until recorded."""
    target: str
    point: InjectionPoint
    variant: PayloadVariant
    sent_at: float
    status_code: Optional[int] = None
    error: str = ""
    state: str = SENT
    confirmed_at: Optional[float] = None
    catcher_kind: str = ""

    @property
    def marker(self) -> str:
        return self.variant.marker


@dataclass(frozen=True)
class CallbackEvent:
    marker: str
    observed_at: float
    catcher_kind: str
    remote_addr: str = ""


@dataclass
class ScanResult:
    """Terminal view of an attempt."""
    target: str
    point: InjectionPoint
    payload: str
    marker: str
    state: str             # "confirmed", "sent-unconfirmed", "transport-error"
    status_code: Optional[int] = None
    error: str = ""

    @classmethod
    def from_attempt(cls, attempt: ProbeAttempt) -> "ScanResult":
        state = attempt.state
        if state in (SENT, UNCONFIRMED):
            state = SENT_UNCONFIRMED
        return cls(
            target=attempt.target,
            point=attempt.point,
            payload=attempt.variant.text,
            marker=attempt.marker,
            state=state,
            status_code=attempt.status_code,
            error=attempt.error,
        )

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "type": self.point.request_type,
            "surface": self.point.surface,
            "name": self.point.name,
            "payload": self.payload,
            "marker": self.marker,
            "state": self.state,
            "status_code": self.status_code,
            "error": self.error,
        }

    def __str__(self):
        return (f"[{self.state.upper()}] {self.target} @ {self.point} "
                f"payload={self.payload!r} marker={self.marker}")
