"""Sender and group-admin resolution across JID encodings.

Group rosters can list the same person as ``<number>@s.whatsapp.net`` or as
an opaque ``<id>@lid`` alias, sometimes with a ``:<device>`` segment. Matching
therefore walks from strict to loose: bare number, normalized JID, raw JID,
and finally a substring check between bare numbers.

The substring fallback can false-positive on short numbers and is not a
security boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from loguru import logger

from lynae.bus.events import MessageKey
from lynae.utils.jid import base_number, is_group, normalize_jid, user_jid

ADMIN_ROLES = ("admin", "superadmin")


@dataclass(frozen=True)
class AdminStatus:
    is_admin: bool = False
    is_bot_admin: bool = False


def bot_identity(self_id: str | None, fallback_number: str = "") -> str | None:
    """Canonical user JID of the bot, derived from the session's self id."""
    raw = self_id or fallback_number
    if not raw or not base_number(raw).strip("+"):
        return None
    return user_jid(raw)


def resolve_sender(key: MessageKey, bot_jid: str | None = None) -> str:
    sender = key.participant or key.remote_jid
    if key.from_me and bot_jid:
        sender = bot_jid
    if not sender or is_group(sender):
        sender = key.remote_jid
    return sender


def member_id(member: Any) -> str | None:
    if isinstance(member, dict):
        value = member.get("id") or member.get("jid")
    else:
        value = getattr(member, "id", None) or getattr(member, "jid", None)
    return str(value) if value else None


def _member_role(member: Any) -> Any:
    if isinstance(member, dict):
        return member.get("admin")
    return getattr(member, "admin", None)


def is_admin_role(value: Any) -> bool:
    if value is True:
        return True
    if isinstance(value, str):
        return value.lower() in ADMIN_ROLES
    return False


def find_member(members: Iterable[Any], jid: str | None) -> Any | None:
    """Find ``jid`` in a roster, trying each match rule across all members before loosening."""
    if not jid:
        return None
    candidates = [(m, mid) for m in members if (mid := member_id(m))]
    wanted_base = base_number(jid)
    wanted_norm = normalize_jid(jid)
    wanted_raw = str(jid).lower()

    rules = (
        lambda mid: bool(wanted_base) and base_number(mid) == wanted_base,
        lambda mid: normalize_jid(mid) == wanted_norm,
        lambda mid: mid.lower() == wanted_raw,
        lambda mid: (bool(wanted_base) and wanted_base in mid.lower())
        or (bool(base_number(mid)) and base_number(mid) in wanted_raw),
    )
    for rule in rules:
        for member, mid in candidates:
            if rule(mid):
                return member
    return None


def member_is_admin(members: Iterable[Any], jid: str | None) -> bool:
    member = find_member(members, jid)
    return member is not None and is_admin_role(_member_role(member))


async def resolve_admin_status(client: Any, chat: str, sender: str, bot_jid: str | None) -> AdminStatus:
    """Admin flags for ``sender`` and the bot in group ``chat``; fails closed."""
    if not is_group(chat):
        return AdminStatus()
    try:
        metadata = await client.group_metadata(chat)
        members = list((metadata or {}).get("participants") or [])
    except Exception as e:
        logger.warning(f"Error getting group metadata for {chat}: {e}")
        return AdminStatus()

    status = AdminStatus(
        is_admin=member_is_admin(members, sender),
        is_bot_admin=member_is_admin(members, bot_jid),
    )
    logger.debug(f"Admin check in {chat}: sender={sender} admin={status.is_admin} bot_admin={status.is_bot_admin}")
    return status
