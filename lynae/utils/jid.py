"""JID helpers.

A JID looks like ``<user>[:<device>]@<server>``. The server tells the
addressing mode: ``s.whatsapp.net`` for users, ``g.us`` for groups and
``lid`` for the opaque linked-device alias some group rosters report.
"""

import re

USER_SERVER = "s.whatsapp.net"
GROUP_SERVER = "g.us"
LID_SERVER = "lid"

_NON_DIGITS = re.compile(r"[^0-9]")


def is_group(jid: str | None) -> bool:
    return bool(jid) and f"@{GROUP_SERVER}" in str(jid)


def is_user(jid: str | None) -> bool:
    return bool(jid) and f"@{USER_SERVER}" in str(jid) and not is_group(jid)


def base_number(jid: str | None) -> str:
    """Return the part before any device segment and domain: ``62812:3@lid`` -> ``62812``."""
    if not jid:
        return ""
    return str(jid).split(":")[0].split("@")[0]


def normalize_jid(jid: str | None) -> str:
    """Strip the device segment and lower-case: ``62812:3@S.whatsapp.net`` -> ``62812@s.whatsapp.net``."""
    if not jid:
        return ""
    normalized = str(jid)
    if ":" in normalized:
        normalized = normalized.split(":")[0] + "@" + normalized.split("@")[-1]
    return normalized.lower()


def user_jid(number: str) -> str:
    """Build a canonical user JID from anything carrying a phone number."""
    return f"{_NON_DIGITS.sub('', base_number(number))}@{USER_SERVER}"


def as_user_jid(value: str | None) -> str | None:
    """Return a user JID for ``value`` or None when it cannot address a user."""
    if not value or is_group(value):
        return None
    if is_user(value):
        return value
    if value.isdigit():
        return f"{value}@{USER_SERVER}"
    return None
