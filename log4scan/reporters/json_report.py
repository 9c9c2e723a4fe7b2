"""JSON output of scan results (--output)."""

import json
from datetime import datetime, timezone
from typing import List

from log4scan.core.errors import ConfigError
from log4scan.core.models import ScanResult, CONFIRMED, SENT_UNCONFIRMED, TRANSPORT_ERROR


def summarize(results: List[ScanResult]) -> dict:
    counts = {CONFIRMED: 0, SENT_UNCONFIRMED: 0, TRANSPORT_ERROR: 0}
    for r in results:
        counts[r.state] = counts.get(r.state, 0) + 1
    return {"total": len(results), **counts}


def write_json(filename: str, results: List[ScanResult], catcher_type: str) -> None:
    doc = {
        "generated": datetime.now(timezone.utc).isoformat(),
        "catcher": catcher_type,
        "summary": summarize(results),
        "results": [r.to_dict() for r in results],
    }
    try:
        with open(filename, "w", encoding="utf-8") as f:
            json.dump(doc, f, indent=2, ensure_ascii=False)
    except OSError as exc:
        raise ConfigError(f"Cannot write output file {filename!r}: {exc}") from exc
