"""Immutable scan options built once from the command line."""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

from log4scan.core.errors import ConfigError
from log4scan.core.models import REQUEST_TYPES, GET
from log4scan.parsers.wordlist import merge_entries, parse_key_values

CATCHER_TYPES = ("dns", "ldap", "tcp", "none")
NO_CATCHER = "none"

DEFAULT_RESOURCE = "l4s"
DEFAULT_MAX_THREADS = 150
DEFAULT_MAX_FORM_THREADS = 10
DEFAULT_TIMEOUT = 3.0
DEFAULT_WAIT = 5.0


@dataclass(frozen=True)
class ScanOptions:
    caddr: str
    request_types: Tuple[str, ...] = (GET,)
    catcher_type: str = "dns"
    resource: str = DEFAULT_RESOURCE
    headers: Tuple[str, ...] = ()
    fields: Tuple[str, ...] = ()
    params: Tuple[str, ...] = ()
    payloads: Tuple[str, ...] = ()
    header_values: Dict[str, str] = field(default_factory=dict)
    field_values: Dict[str, str] = field(default_factory=dict)
    param_values: Dict[str, str] = field(default_factory=dict)
    proxy: Optional[str] = None
    basic_auth: Optional[Tuple[str, str]] = None
    no_redirect: bool = False
    no_user_agent_fuzzing: bool = False
    auth_fuzzing: bool = False
    form_fuzzing: bool = False
    waf_bypass: bool = False
    check_cve_2021_45046: bool = False
    max_threads: int = DEFAULT_MAX_THREADS
    max_form_threads: int = DEFAULT_MAX_FORM_THREADS
    timeout: float = DEFAULT_TIMEOUT
    wait: float = DEFAULT_WAIT
    no_wait_timeout: bool = False

    def __post_init__(self):
        if not self.caddr:
            raise ConfigError("--caddr is required (address the callbacks are sent to)")
        if self.catcher_type not in CATCHER_TYPES:
            raise ConfigError(
                f"Invalid catcher type {self.catcher_type!r} (choose from {', '.join(CATCHER_TYPES)})")
        if not self.request_types:
            raise ConfigError("At least one request type is required")
        for rtype in self.request_types:
            if rtype not in REQUEST_TYPES:
                raise ConfigError(
                    f"Invalid request type {rtype!r} (choose from {', '.join(REQUEST_TYPES)})")
        if not self.resource or "/" in self.resource or "." in self.resource:
            raise ConfigError(f"Invalid resource {self.resource!r} (single path/DNS label)")
        if self.max_threads < 1 or self.max_form_threads < 1:
            raise ConfigError("--max-threads and --max-form-threads must be at least 1")
        if self.timeout <= 0:
            raise ConfigError("--timeout must be positive")
        if self.wait < 0:
            raise ConfigError("--wait must not be negative")

    @property
    def catcher_active(self) -> bool:
        return self.catcher_type != NO_CATCHER

    def with_all_checks(self) -> "ScanOptions":
        """The --all shortcut."""
        return replace(
            self,
            auth_fuzzing=True,
            form_fuzzing=True,
            waf_bypass=True,
            check_cve_2021_45046=True,
            request_types=REQUEST_TYPES,
        )

    @classmethod
    def from_args(cls, args) -> "ScanOptions":
        """Build options from an argparse namespace, loading wordlist files."""
        opts = cls(
            caddr=args.caddr or "",
            request_types=parse_request_types(args.type),
            catcher_type=args.catcher_type,
            resource=args.resource,
            headers=tuple(merge_entries(args.header, args.headers_file)),
            fields=tuple(merge_entries(args.field, args.fields_file)),
            params=tuple(merge_entries(args.param, args.params_file)),
            payloads=tuple(merge_entries(args.payload, args.payloads_file)),
            header_values=parse_key_values(args.set_header, "--set-header"),
            field_values=parse_key_values(args.set_field, "--set-field"),
            param_values=parse_key_values(args.set_param, "--set-param"),
            proxy=args.proxy or None,
            basic_auth=parse_basic_auth(args.basic_auth),
            no_redirect=args.no_redirect,
            no_user_agent_fuzzing=args.no_user_agent_fuzzing,
            auth_fuzzing=args.auth_fuzzing,
            form_fuzzing=args.form_fuzzing,
            waf_bypass=args.waf_bypass,
            check_cve_2021_45046=args.check_cve_2021_45046,
            max_threads=args.max_threads,
            max_form_threads=args.max_form_threads,
            timeout=args.timeout,
            wait=args.wait,
            no_wait_timeout=args.no_wait_timeout,
        )
        if args.all:
            opts = opts.with_all_checks()
        return opts


def parse_request_types(values) -> Tuple[str, ...]:
    """Accept repeated and comma-separated --type values, keep first-seen order."""
    types = []
    for value in values or [GET]:
        for rtype in value.split(","):
            rtype = rtype.strip().lower()
            if rtype and rtype not in types:
                types.append(rtype)
    return tuple(types)


def parse_basic_auth(value: Optional[str]) -> Optional[Tuple[str, str]]:
    if not value:
        return None
    user, sep, password = value.partition(":")
    if not sep or not user:
        raise ConfigError(f"Invalid --basic-auth {value!r} (expected user:pass)")
    return user, password
