"""Injection surface enumeration."""

from typing import Dict, Iterable, List

from log4scan.core.models import (
    InjectionPoint, GET, HEADER, QUERY, FIELD, WORDLIST, FIXED,
)

USER_AGENT = "User-Agent"

DEFAULT_HEADERS = [
    "Referer",
    "X-Api-Version",
    "X-Forwarded-For",
    "X-Forwarded-Host",
    "X-Client-IP",
    "X-Real-IP",
    "True-Client-IP",
    "X-Originating-IP",
    "Contact",
    "From",
]

DEFAULT_FIELDS = ["username", "user", "email", "email_address", "password"]

DEFAULT_PARAMS: List[str] = []


def _points(request_type: str, surface: str, names: Iterable[str],
            fixed: Dict[str, str], case_insensitive: bool = False) -> List[InjectionPoint]:
    norm = (lambda s: s.lower()) if case_insensitive else (lambda s: s)
    fixed_names = {norm(k) for k in fixed}

    points = [InjectionPoint(request_type, surface, name, WORDLIST)
              for name in names if norm(name) not in fixed_names]
    points += [InjectionPoint(request_type, surface, name, FIXED, value)
               for name, value in fixed.items()]
    return points


def header_names(opts) -> List[str]:
    names = list(opts.headers) or list(DEFAULT_HEADERS)
    names = [n for n in names if n.lower() != USER_AGENT.lower()]
    if not opts.no_user_agent_fuzzing:
        names.insert(0, USER_AGENT)
    return names


def enumerate_injection_points(opts) -> List[InjectionPoint]:
    """Ordered, duplicate-free injection points for one target.

    A name with both a wordlist entry and a fixed value only yields the
    fixed-value point.
    """
    headers = header_names(opts)
    header_values = dict(opts.header_values)
    if opts.no_user_agent_fuzzing:
        header_values = {k: v for k, v in header_values.items()
                         if k.lower() != USER_AGENT.lower()}

    points: List[InjectionPoint] = []
    seen = set()
    for rtype in opts.request_types:
        candidates = _points(rtype, HEADER, headers, header_values, case_insensitive=True)
        if rtype == GET:
            candidates += _points(rtype, QUERY, list(opts.params) or DEFAULT_PARAMS,
                                  opts.param_values)
        else:
            candidates += _points(rtype, FIELD, list(opts.fields) or DEFAULT_FIELDS,
                                  opts.field_values)
        for point in candidates:
            if point.key in seen:
                continue
            seen.add(point.key)
            points.append(point)
    return points
