"""Line-delimited wordlists and key=value option parsing."""

from typing import Dict, Iterable, List, Optional

from log4scan.core.errors import ConfigError


def load_wordlist(filename: Optional[str]) -> List[str]:
    """Read one entry per line; blank lines and '#' comments are ignored."""
    if not filename:
        return []
    try:
        with open(filename, "r", encoding="utf-8") as f:
            raw = f.read()
    except OSError as exc:
        raise ConfigError(f"Cannot read wordlist {filename!r}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ConfigError(f"Wordlist {filename!r} is not valid UTF-8: {exc}") from exc

    entries = []
    for line in raw.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        entries.append(line)
    return entries


def merge_entries(literal: Optional[Iterable[str]], filename: Optional[str]) -> List[str]:
    """Literal entries first, then file entries, without duplicates."""
    merged: List[str] = []
    for entry in list(literal or []) + load_wordlist(filename):
        if entry not in merged:
            merged.append(entry)
    return merged


def parse_key_values(pairs: Optional[Iterable[str]], flag: str = "--set") -> Dict[str, str]:
    """Parse ``key=value`` strings. Only the first '=' splits."""
    values: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise ConfigError(f"Invalid {flag} value {pair!r} (expected key=value)")
        values[key] = value
    return values
