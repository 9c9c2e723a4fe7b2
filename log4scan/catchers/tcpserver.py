"""Raw TCP catcher: scans whatever bytes arrive for a marker."""

import socket
import socketserver

from log4scan.catchers.base import ServerCatcher, TCPServer
from log4scan.catchers.ldapserver import BIND_RESPONSE, SEQUENCE, MAX_MESSAGE, ldap_result, parse_message


class _TCPHandler(socketserver.BaseRequestHandler):
    timeout = 5

    def handle(self):
        catcher = self.server.catcher
        sock = self.request
        sock.settimeout(self.timeout)
        received = b""
        answered = False
        try:
            while len(received) < MAX_MESSAGE:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                received += chunk

                marker = catcher.find_marker(received.decode("latin-1"))
                if marker:
                    catcher.emit(marker, self.client_address[0])
                    return

                # JNDI clients only send the lookup path after a successful bind
                if not answered and received[0] == SEQUENCE:
                    answered = True
                    try:
                        msg_id = parse_message(received)[0]
                    except ValueError:
                        msg_id = 1
                    sock.sendall(ldap_result(msg_id, BIND_RESPONSE))
        except (socket.timeout, OSError):
            return


class TCPCatcher(ServerCatcher):

    kind = "tcp"
    default_port = 389
    server_class = TCPServer
    handler_class = _TCPHandler
