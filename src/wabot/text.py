"""
Mention and link extraction over message text.

Links are found by linkifying the text to HTML and then collecting the
``href`` of every anchor, so URLs, e-mail addresses and phone numbers all come
back in the form a client would render them (``http://…``, ``mailto:…``,
``tel:…``).
"""

import html
import re
from html.parser import HTMLParser
from typing import Any, Iterable

import bleach
from pydantic import AnyUrl, TypeAdapter, ValidationError

from wabot.jid import PN_SERVER

_MENTION_RE = re.compile(r"@(\d{7,16})(?!\d)")
_ANCHOR_SPLIT_RE = re.compile(r"(<a\b[^>]*>.*?</a>)", re.IGNORECASE | re.DOTALL)
_PHONE_RE = re.compile(
    r"(?<![\w@/+.=:&#;-])(?:\+?\d{1,3}[-. ]?)?\(?\d{3}\)?[-. ]?\d{3}[-. ]?\d{4}(?![\w/])"
)

_URL_ADAPTER = TypeAdapter(AnyUrl)


def dedupe(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(item for item in items if item))


def is_link(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    try:
        _URL_ADAPTER.validate_python(value)
    except ValidationError:
        return False
    return True


def parse_mentions(text: str, server: str = PN_SERVER) -> list[str]:
    return dedupe(f"{digits}@{server}" for digits in _MENTION_RE.findall(text or ""))


class _AnchorParser(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.hrefs: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, Any]]) -> None:
        if tag != "a":
            return
        for name, value in attrs:
            if name == "href" and value:
                self.hrefs.append(value)


def _link_phones(fragment: str) -> str:
    def _anchor(match: re.Match[str]) -> str:
        number = re.sub(r"[^\d+]", "", match.group(0))
        return f'<a href="tel:{number}">{match.group(0)}</a>'

    return _PHONE_RE.sub(_anchor, fragment)


def linkify(text: str) -> str:
    """Escape ``text`` and wrap URLs, e-mails and phone numbers in anchors."""
    linked = bleach.linkify(html.escape(text or "", quote=False), callbacks=[], parse_email=True)
    parts = _ANCHOR_SPLIT_RE.split(linked)
    # odd indices are the anchors bleach already produced
    return "".join(part if i % 2 else _link_phones(part) for i, part in enumerate(parts))


def parse_links(text: str) -> list[str]:
    parser = _AnchorParser()
    parser.feed(linkify(text))
    parser.close()
    return dedupe(parser.hrefs)
