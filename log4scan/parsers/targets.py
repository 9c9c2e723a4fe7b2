"""Target parsing: single URLs and CIDR ranges."""

import ipaddress
from typing import Iterable, Iterator, List, Optional
from urllib.parse import urlsplit, urlunsplit

from log4scan.core.errors import ConfigError

# Largest range expanded into targets (a /16).
MAX_CIDR_ADDRESSES = 65536


def normalize_url(url: str) -> str:
    """Lower-case scheme and host, default path to '/', drop the fragment."""
    parts = urlsplit(url.strip())
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        raise ConfigError(f"Invalid target URL {url!r}")
    try:
        parts.port
    except ValueError as exc:
        raise ConfigError(f"Invalid port in target URL {url!r}") from exc
    netloc = parts.netloc.lower()
    return urlunsplit((parts.scheme.lower(), netloc, parts.path or "/", parts.query, ""))


def parse_urls(urls: Iterable[str]) -> List[str]:
    targets: List[str] = []
    for url in urls:
        norm = normalize_url(url)
        if norm not in targets:
            targets.append(norm)
    return targets


def expand_cidr(cidr: str, schema: str = "http", port: Optional[int] = None,
                path: str = "/") -> Iterator[str]:
    """Yield one target URL per host address in the network."""
    try:
        network = ipaddress.ip_network(cidr.strip(), strict=False)
    except ValueError as exc:
        raise ConfigError(f"Invalid CIDR {cidr!r}: {exc}") from exc
    if network.num_addresses > MAX_CIDR_ADDRESSES:
        raise ConfigError(f"CIDR {cidr!r} has {network.num_addresses} addresses "
                          f"(at most {MAX_CIDR_ADDRESSES} allowed)")
    if schema not in ("http", "https"):
        raise ConfigError(f"Invalid schema {schema!r}")
    if not path.startswith("/"):
        path = f"/{path}"

    empty = True
    for ip in network.hosts():
        empty = False
        yield _host_url(ip, schema, port, path)
    if empty:
        yield _host_url(network.network_address, schema, port, path)


def _host_url(ip, schema: str, port: Optional[int], path: str) -> str:
    host = f"[{ip}]" if ip.version == 6 else str(ip)
    if port:
        host = f"{host}:{port}"
    return f"{schema}://{host}{path}"


def parse_cidrs(cidrs: Iterable[str], schema: str = "http", port: Optional[int] = None,
                path: str = "/") -> List[str]:
    targets: List[str] = []
    seen = set()
    for cidr in cidrs:
        for url in expand_cidr(cidr, schema, port, path):
            if url not in seen:
                seen.add(url)
                targets.append(url)
        if len(targets) > MAX_CIDR_ADDRESSES:
            raise ConfigError(f"CIDR ranges expand to more than {MAX_CIDR_ADDRESSES} targets")
    return targets
