import argparse
import re
import sys

from log4scan.core.config import (
    ScanOptions, CATCHER_TYPES, DEFAULT_RESOURCE, DEFAULT_MAX_THREADS,
    DEFAULT_MAX_FORM_THREADS, DEFAULT_TIMEOUT, DEFAULT_WAIT,
)
from log4scan.core.errors import Log4ScanError
from log4scan.core.models import CONFIRMED, TRANSPORT_ERROR
from log4scan.core.scanner import Scanner
from log4scan.parsers.targets import parse_cidrs, parse_urls
from log4scan.reporters.console import Log
from log4scan.reporters.json_report import write_json

_DURATION_RX = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


def duration(value: str) -> float:
    """'5', '5s', '500ms', '1m' → seconds."""
    m = _DURATION_RX.match(value)
    if not m:
        raise argparse.ArgumentTypeError(f"invalid duration {value!r}")
    return float(m.group(1)) * _UNITS[m.group(2) or "s"]


def add_scan_flags(p: argparse.ArgumentParser):
    p.add_argument("-a", "--all", action="store_true", help="shortcut to run all checks")
    p.add_argument("-t", "--type", action="append", metavar="TYPE",
                   help="get, post or json (repeatable, default: get)")
    p.add_argument("--header", action="append", help="header to use")
    p.add_argument("--field", action="append", help="field to use")
    p.add_argument("--param", action="append", help="query param to use")
    p.add_argument("--payload", action="append",
                   help="payload to use ({{proto}} {{caddr}} {{marker}} {{resource}})")
    p.add_argument("--headers-file", help="use custom headers from file")
    p.add_argument("--fields-file", help="use custom fields from file")
    p.add_argument("--params-file", help="use custom query params from file")
    p.add_argument("--payloads-file", help="use custom payloads from file")
    p.add_argument("--set-header", action="append", metavar="KEY=VALUE",
                   help="set fix header value")
    p.add_argument("--set-field", action="append", metavar="KEY=VALUE",
                   help="set fix field value")
    p.add_argument("--set-param", action="append", metavar="KEY=VALUE",
                   help="set fix query param value")
    p.add_argument("--catcher-type", default="dns", choices=CATCHER_TYPES,
                   help="type of callback catcher (default: dns)")
    p.add_argument("--caddr", help="address to catch the callbacks (eg. ip:port)")
    p.add_argument("-r", "--resource", default=DEFAULT_RESOURCE, help="resource in payload")
    p.add_argument("--proxy", help="Proxy (ej: http://127.0.0.1:8080)")
    p.add_argument("--basic-auth", help="basic auth credentials (eg. user:pass)")
    p.add_argument("--no-redirect", action="store_true", help="do not follow redirects")
    p.add_argument("--no-user-agent-fuzzing", action="store_true",
                   help="exclude user-agent header from fuzzing")
    p.add_argument("--auth-fuzzing", action="store_true", help="add auth fuzzing")
    p.add_argument("--form-fuzzing", action="store_true", help="add form submits to fuzzing")
    p.add_argument("--waf-bypass", action="store_true",
                   help="extend scans with WAF bypass payloads")
    p.add_argument("--check-cve-2021-45046", action="store_true",
                   help="check for CVE-2021-45046")
    p.add_argument("--max-threads", type=int, default=DEFAULT_MAX_THREADS,
                   help="max number of concurrent requests")
    p.add_argument("--max-form-threads", type=int, default=DEFAULT_MAX_FORM_THREADS,
                   help="max number of concurrent form submits")
    p.add_argument("--timeout", type=duration, default=DEFAULT_TIMEOUT,
                   help="time limit for requests (default: 3s)")
    p.add_argument("-w", "--wait", type=duration, default=DEFAULT_WAIT,
                   help="wait time to catch callbacks (default: 5s)")
    p.add_argument("--no-wait-timeout", action="store_true", help="wait forever for callbacks")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="log4scan",
        description="Send crafted requests and catch callbacks of systems "
                    "impacted by the log4j Log4Shell vulnerability")
    p.add_argument("-v", "--verbose", action="count", default=1, help="-v: show every request")
    p.add_argument("--no-color", action="store_true", help="disable colored output")
    p.add_argument("-o", "--output", help="write results as JSON to this file")

    scan_flags = argparse.ArgumentParser(add_help=False)
    add_scan_flags(scan_flags)

    sub = p.add_subparsers(dest="command", required=True)
    url = sub.add_parser("url", parents=[scan_flags], help="scan one or more URLs")
    url.add_argument("urls", nargs="+", metavar="URL")

    cidr = sub.add_parser("cidr", parents=[scan_flags], help="scan every host of a CIDR range")
    cidr.add_argument("cidrs", nargs="+", metavar="CIDR")
    cidr.add_argument("--schema", default="http", choices=["http", "https"])
    cidr.add_argument("--port", type=int, help="port (default: scheme default)")
    cidr.add_argument("--path", default="/", help="request path (default: /)")
    return p


def load_targets(args):
    if args.command == "url":
        return parse_urls(args.urls)
    return parse_cidrs(args.cidrs, schema=args.schema, port=args.port, path=args.path)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    log = Log(verbose=args.verbose, no_color=args.no_color)

    try:
        options = ScanOptions.from_args(args)
        targets = load_targets(args)
    except Log4ScanError as exc:
        log.fail(str(exc))
        return 1

    log.info("Log4Shell CVE-2021-44228 Remote Vulnerability Scan")
    if not options.catcher_active:
        log.warn("No catcher configured: requests are sent but callbacks cannot be confirmed")

    scanner = Scanner(options, log)
    code = 0
    try:
        scanner.run(targets)
    except Log4ScanError as exc:
        log.fail(str(exc))
        return 1
    except KeyboardInterrupt:
        scanner.abort()
        log.warn("Scan interrupted")
        code = 130

    results = scanner.results()
    confirmed = sum(1 for r in results if r.state == CONFIRMED)
    errors = sum(1 for r in results if r.state == TRANSPORT_ERROR)
    log.ok(f"Completed scanning: {len(results)} requests, {confirmed} confirmed, "
           f"{errors} transport errors")

    if args.output:
        try:
            write_json(args.output, results, options.catcher_type)
        except Log4ScanError as exc:
            log.fail(str(exc))
            return 1
        log.info(f"Results written to {args.output}")
    return code


if __name__ == "__main__":
    sys.exit(main())
