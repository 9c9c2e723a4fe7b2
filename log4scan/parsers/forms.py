"""HTML form extraction using stdlib html.parser."""

from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Dict, List, Optional
from urllib.parse import urljoin, urlsplit


@dataclass
class FormData:
    """Represents an HTML <form> with its inputs."""
    action: str = ""
    method: str = "GET"
    inputs: Dict[str, str] = field(default_factory=dict)  # name → default value


class _FormExtractor(HTMLParser):
    """Extract <form> elements with their inputs from HTML."""

    def __init__(self):
        super().__init__()
        self.forms: List[FormData] = []
        self._current_form: Optional[FormData] = None

    def handle_starttag(self, tag, attrs):
        attr_dict = dict(attrs)

        if tag == "form":
            self._current_form = FormData(
                action=attr_dict.get("action") or "",
                method=(attr_dict.get("method") or "GET").upper(),
            )

        elif self._current_form is not None:
            name = attr_dict.get("name") or ""
            if not name:
                return
            if tag == "input":
                input_type = (attr_dict.get("type") or "text").lower()
                if input_type not in ("submit", "button", "image", "reset", "file"):
                    self._current_form.inputs[name] = attr_dict.get("value") or ""
            elif tag in ("textarea", "select"):
                self._current_form.inputs[name] = ""

    def handle_endtag(self, tag):
        if tag == "form" and self._current_form is not None:
            self.forms.append(self._current_form)
            self._current_form = None

    def close(self):
        super().close()
        # unterminated <form>
        if self._current_form is not None:
            self.forms.append(self._current_form)
            self._current_form = None


def extract_forms(html: str) -> List[FormData]:
    """Extract all <form> elements with their inputs from HTML.

    Malformed markup yields whatever forms were recognized before the
    parser gave up.
    """
    parser = _FormExtractor()
    try:
        parser.feed(html)
        parser.close()
    except Exception:
        pass
    return parser.forms


def resolve_action(page_url: str, form: FormData) -> str:
    """Absolute action URL; an empty action posts back to the page."""
    return urljoin(page_url, form.action or page_url)


def same_host(url_a: str, url_b: str) -> bool:
    return (urlsplit(url_a).hostname or "").lower() == (urlsplit(url_b).hostname or "").lower()
