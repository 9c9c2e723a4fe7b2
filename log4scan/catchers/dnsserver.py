"""DNS catcher: a UDP listener that records query names carrying a marker."""

import socketserver

import dns.exception
import dns.message
import dns.rcode

from log4scan.catchers.base import ServerCatcher, UDPServer


class _DNSHandler(socketserver.BaseRequestHandler):

    def handle(self):
        data, sock = self.request
        catcher = self.server.catcher
        try:
            query = dns.message.from_wire(data)
        except dns.exception.DNSException:
            return

        for question in query.question:
            marker = catcher.find_marker(question.name.to_text())
            if marker:
                catcher.emit(marker, self.client_address[0])

        response = dns.message.make_response(query)
        response.set_rcode(dns.rcode.NOERROR)
        try:
            sock.sendto(response.to_wire(), self.client_address)
        except OSError:
            return


class DNSCatcher(ServerCatcher):
    """Payloads use ``${jndi:dns://caddr/<marker>.<resource>}``; the target
    asks the DNS server at caddr for ``<marker>.<resource>``."""

    kind = "dns"
    default_port = 53
    server_class = UDPServer
    handler_class = _DNSHandler
