"""VulnLab: a web app that logs user input the way an unpatched log4j does.

Every value the vulnerable endpoints receive (headers, query params, form
and JSON fields, credentials) goes through ``vulnerable_log``, which
resolves ``${...}`` lookups and performs real DNS / LDAP callbacks for
``${jndi:...}``. Used by the end-to-end tests through httpx.WSGITransport
and runnable standalone for manual testing.
"""

import re
import socket
from typing import Callable, List, Optional
from urllib.parse import urlsplit

import dns.exception
import dns.message
import dns.query
from flask import Flask, request, render_template_string, make_response

from log4scan.catchers.ldapserver import bind_request, read_message, search_request

app = Flask(__name__)

# Every resolved log line, newest last (inspected by tests).
LOG_LINES: List[str] = []

_LOOKUP_RX = re.compile(r"\$\{([^${}]*)\}")


# ── Lookup emulation ────────────────────────────────────────────

def _resolve(expr: str, on_jndi: Callable[[str], None]) -> str:
    name, sep, default = expr.partition(":-")
    prefix, _, arg = name.partition(":")
    prefix = prefix.lower()

    if prefix == "lower":
        return arg.lower()
    if prefix == "upper":
        return arg.upper()
    if prefix == "jndi":
        on_jndi(arg)
        return ""
    # env, sys and unknown lookups resolve to their default, if any
    return default if sep else ""


def interpolate(text: str, on_jndi: Callable[[str], None]) -> str:
    """Resolve lookups innermost first, like log4j's StrSubstitutor."""
    for _ in range(32):
        resolved = _LOOKUP_RX.sub(lambda m: _resolve(m.group(1), on_jndi), text)
        if resolved == text:
            break
        text = resolved
    return text


def jndi_callback(url: str, timeout: float = 1.0) -> Optional[str]:
    """Perform the lookup a vulnerable JNDI context would perform."""
    scheme, sep, rest = url.partition("://")
    if not sep:
        return None
    authority, _, name = rest.partition("/")
    if "#" in authority:
        # 2.15.0 only checks the part before '#' against its allow-list
        authority = authority.split("#", 1)[1].lstrip(".")
    try:
        host_part = urlsplit(f"//{authority}")
        host, port = host_part.hostname, host_part.port
    except ValueError:
        return None
    if not host:
        return None
    scheme = scheme.lower()

    try:
        if scheme == "dns":
            query = dns.message.make_query(name, "A")
            dns.query.udp(query, host, port=port or 53, timeout=timeout)
        elif scheme in ("ldap", "ldaps"):
            with socket.create_connection((host, port or 389), timeout=timeout) as sock:
                stream = sock.makefile("rwb")
                stream.write(bind_request(1))
                stream.flush()
                read_message(stream)
                stream.write(search_request(name, 2))
                stream.flush()
                read_message(stream)
        else:
            return None
    except (OSError, ValueError, dns.exception.DNSException):
        return None
    return name


def vulnerable_log(message: str) -> str:
    line = interpolate(message, jndi_callback)
    LOG_LINES.append(line)
    return line


def log_request():
    """Log every piece of user input of the current request."""
    for key, value in request.headers.items():
        vulnerable_log(f"header {key}: {value}")
    for key, value in request.args.items():
        vulnerable_log(f"param {key}={value}")
    for key, value in request.form.items():
        vulnerable_log(f"field {key}={value}")
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        for key, value in body.items():
            vulnerable_log(f"json {key}={value}")


# ── Shared HTML layout ──────────────────────────────────────────

_LAYOUT = """<!DOCTYPE html>
<html><head><title>VulnLab | {{ title }}</title></head>
<body>
<h1>VulnLab</h1>
<h2>{{ title }}</h2>
{{ content|safe }}
</body></html>
"""


def page(title, content):
    return render_template_string(_LAYOUT, title=title, content=content)


# ══════════════════════════════════════════════════════════════════
#  HOME: forms for form fuzzing (one in scope, one off-site)
# ══════════════════════════════════════════════════════════════════

@app.route("/", methods=["GET", "POST"])
def home():
    log_request()
    return page("Home", """
    <form action="/login" method="POST">
        <input type="text" name="username" value="">
        <input type="password" name="password" value="">
        <button type="submit">Login</button>
    </form>

    <form action="http://offsite.example/collect" method="POST">
        <input type="text" name="email" value="">
        <button type="submit">Subscribe</button>
    </form>
    """)


@app.route("/login", methods=["GET", "POST"])
def login():
    log_request()
    return page("Login", "<p>Invalid credentials.</p>")


# ══════════════════════════════════════════════════════════════════
#  PORTAL: only the submitted form fields are ever logged
# ══════════════════════════════════════════════════════════════════

@app.route("/portal")
def portal():
    return page("Portal", """
    <form action="/signin" method="POST">
        <input type="text" name="user" value="">
        <textarea name="comment"></textarea>
        <input type="submit" name="go" value="Sign in">
    </form>
    """)


@app.route("/signin", methods=["POST"])
def signin():
    for key, value in request.form.items():
        vulnerable_log(f"sign-in {key}={value}")
    return page("Sign in", "<p>Unknown user.</p>")


# ══════════════════════════════════════════════════════════════════
#  Auth challenges: credentials are logged on failure
# ══════════════════════════════════════════════════════════════════

@app.route("/admin")
def admin():
    auth = request.authorization
    if auth is not None and auth.type == "basic":
        # the payload contains ':', so log both halves
        vulnerable_log(f"failed login for {auth.username}:{auth.password}")
    resp = make_response(page("Admin", "<p>Authentication required.</p>"), 401)
    resp.headers["WWW-Authenticate"] = 'Basic realm="vulnlab"'
    return resp


@app.route("/api")
def api():
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        vulnerable_log(f"rejected token {header[7:]}")
    resp = make_response({"error": "unauthorized"}, 401)
    resp.headers["WWW-Authenticate"] = 'Bearer realm="vulnlab"'
    return resp


# ══════════════════════════════════════════════════════════════════
#  Patched endpoint: input is never interpolated
# ══════════════════════════════════════════════════════════════════

@app.route("/safe", methods=["GET", "POST"])
def safe():
    LOG_LINES.append(f"safe {request.path}")
    return page("Safe", "<p>Nothing to see.</p>")


# ══════════════════════════════════════════════════════════════════
#  Main
# ══════════════════════════════════════════════════════════════════

if __name__ == "__main__":
    print("\n  VulnLab starting on http://0.0.0.0:5000\n")
    app.run(host="0.0.0.0", port=5000, debug=True)
