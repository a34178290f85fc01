"""
Session identity resolver.

Pure helpers over protocol identifiers of the form
``user[:device]@server``. Nothing here raises: input that does not match the
grammar decodes to empty parts and classifies as ``UNKNOWN``.
"""

import re
from enum import Enum
from typing import Any, NamedTuple

GROUP_SERVER = "g.us"
PN_SERVER = "s.whatsapp.net"
LID_SERVER = "lid"

_JID_RE = re.compile(r"^([\w-]+)(?::\d+)?@([\w.-]+)$")


class JidKind(str, Enum):
    GROUP = "group"
    PHONE_NUMBER = "phone_number"
    LINKED = "linked"
    UNKNOWN = "unknown"


class JidParts(NamedTuple):
    user: str
    server: str


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def decode(jid: Any) -> JidParts:
    match = _JID_RE.match(_as_str(jid))
    if not match:
        return JidParts("", "")
    return JidParts(match.group(1), match.group(2))


def normalize(jid: Any) -> str:
    """Strip the device tag: ``123:4@lid`` -> ``123@lid``."""
    user, server = decode(jid)
    if not user:
        return ""
    return f"{user}@{server}"


def is_group(jid: Any) -> bool:
    return _as_str(jid).endswith("@" + GROUP_SERVER)


def is_pn(jid: Any) -> bool:
    return _as_str(jid).endswith("@" + PN_SERVER)


def is_lid(jid: Any) -> bool:
    return _as_str(jid).endswith("@" + LID_SERVER)


def classify(jid: Any) -> JidKind:
    if is_group(jid):
        return JidKind.GROUP
    if is_pn(jid):
        return JidKind.PHONE_NUMBER
    if is_lid(jid):
        return JidKind.LINKED
    return JidKind.UNKNOWN
