"""LDAP catcher and the small subset of BER it needs.

A JNDI LDAP lookup binds anonymously and then searches for the DN from the
payload path (``<marker>.<resource>``). The catcher answers the bind, reads
the search base and answers with an empty result.
"""

import socketserver
from typing import BinaryIO, Optional, Tuple

from log4scan.catchers.base import ServerCatcher, TCPServer

SEQUENCE = 0x30
INTEGER = 0x02
OCTET_STRING = 0x04
ENUMERATED = 0x0A
BOOLEAN = 0x01

BIND_REQUEST = 0x60
BIND_RESPONSE = 0x61
UNBIND_REQUEST = 0x42
SEARCH_REQUEST = 0x63
SEARCH_RES_DONE = 0x65

MAX_MESSAGE = 64 * 1024


# ── BER encoding ───────────────────────────────────────────────

def encode_length(n: int) -> bytes:
    if n < 0x80:
        return bytes([n])
    raw = n.to_bytes((n.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(raw)]) + raw


def tlv(tag: int, value: bytes) -> bytes:
    return bytes([tag]) + encode_length(len(value)) + value


def encode_int(n: int, tag: int = INTEGER) -> bytes:
    return tlv(tag, n.to_bytes(max(1, (n.bit_length() + 8) // 8), "big", signed=True))


def ldap_result(msg_id: int, op: int, code: int = 0) -> bytes:
    result = encode_int(code, ENUMERATED) + tlv(OCTET_STRING, b"") + tlv(OCTET_STRING, b"")
    return tlv(SEQUENCE, encode_int(msg_id) + tlv(op, result))


def bind_request(msg_id: int = 1) -> bytes:
    """Anonymous LDAPv3 simple bind."""
    op = encode_int(3) + tlv(OCTET_STRING, b"") + tlv(0x80, b"")
    return tlv(SEQUENCE, encode_int(msg_id) + tlv(BIND_REQUEST, op))


def search_request(base_dn: str, msg_id: int = 2) -> bytes:
    op = (tlv(OCTET_STRING, base_dn.encode("utf-8"))
          + encode_int(0, ENUMERATED)      # baseObject
          + encode_int(0, ENUMERATED)      # neverDerefAliases
          + encode_int(0) + encode_int(0)  # size / time limit
          + tlv(BOOLEAN, b"\x00")
          + tlv(0x87, b"objectClass")      # present filter
          + tlv(SEQUENCE, b""))
    return tlv(SEQUENCE, encode_int(msg_id) + tlv(SEARCH_REQUEST, op))


# ── BER decoding ───────────────────────────────────────────────

def read_tlv(data: bytes, offset: int = 0) -> Tuple[int, bytes, int]:
    """(tag, value, next offset); ValueError on truncated input."""
    if offset + 2 > len(data):
        raise ValueError("truncated BER element")
    tag = data[offset]
    length = data[offset + 1]
    offset += 2
    if length & 0x80:
        nbytes = length & 0x7F
        if nbytes == 0 or nbytes > 4 or offset + nbytes > len(data):
            raise ValueError("bad BER length")
        length = int.from_bytes(data[offset:offset + nbytes], "big")
        offset += nbytes
    end = offset + length
    if end > len(data):
        raise ValueError("truncated BER element")
    return tag, data[offset:end], end


def parse_message(data: bytes) -> Tuple[int, int, bytes]:
    """LDAPMessage → (message id, protocol op tag, op contents)."""
    tag, body, _ = read_tlv(data)
    if tag != SEQUENCE:
        raise ValueError("not an LDAP message")
    tag, raw_id, offset = read_tlv(body)
    if tag != INTEGER:
        raise ValueError("missing message id")
    op, value, _ = read_tlv(body, offset)
    return int.from_bytes(raw_id, "big", signed=True), op, value


def read_message(stream: BinaryIO) -> Optional[bytes]:
    """Read exactly one BER element from a stream; None on EOF."""
    head = stream.read(2)
    if len(head) < 2:
        return None
    length = head[1]
    extra = b""
    if length & 0x80:
        nbytes = length & 0x7F
        if nbytes == 0 or nbytes > 4:
            raise ValueError("bad BER length")
        extra = stream.read(nbytes)
        if len(extra) < nbytes:
            return None
        length = int.from_bytes(extra, "big")
    if length > MAX_MESSAGE:
        raise ValueError("LDAP message too large")
    body = stream.read(length)
    if len(body) < length:
        return None
    return head + extra + body


def search_base(op_value: bytes) -> str:
    tag, base, _ = read_tlv(op_value)
    if tag != OCTET_STRING:
        raise ValueError("missing search base")
    return base.decode("utf-8", "replace")


# ── Catcher ────────────────────────────────────────────────────

class _LDAPHandler(socketserver.StreamRequestHandler):
    timeout = 5

    def handle(self):
        catcher = self.server.catcher
        try:
            while True:
                raw = read_message(self.rfile)
                if raw is None:
                    return
                msg_id, op, value = parse_message(raw)
                if op == BIND_REQUEST:
                    self.wfile.write(ldap_result(msg_id, BIND_RESPONSE))
                elif op == SEARCH_REQUEST:
                    marker = catcher.find_marker(search_base(value))
                    if marker:
                        catcher.emit(marker, self.client_address[0])
                    self.wfile.write(ldap_result(msg_id, SEARCH_RES_DONE))
                else:
                    return
        except (OSError, ValueError):
            return


class LDAPCatcher(ServerCatcher):

    kind = "ldap"
    default_port = 389
    server_class = TCPServer
    handler_class = _LDAPHandler
