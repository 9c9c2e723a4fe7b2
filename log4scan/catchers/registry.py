"""Catcher selection by --catcher-type."""

from log4scan.catchers.base import Catcher
from log4scan.catchers.dnsserver import DNSCatcher
from log4scan.catchers.ldapserver import LDAPCatcher
from log4scan.catchers.tcpserver import TCPCatcher
from log4scan.core.errors import CatcherError

CATCHERS = {
    "dns": DNSCatcher,
    "ldap": LDAPCatcher,
    "tcp": TCPCatcher,
    "none": Catcher,
}


def start_catcher(kind: str, caddr: str, resource: str = "l4s", log=None) -> Catcher:
    """Create and start the catcher for ``kind``. Raises CatcherError."""
    try:
        cls = CATCHERS[kind]
    except KeyError:
        raise CatcherError(f"Unknown catcher type {kind!r}") from None
    return cls(caddr, resource, log).start()
