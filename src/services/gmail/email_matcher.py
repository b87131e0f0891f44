"""
Helpers that turn parsed Gmail messages into contact matches.
"""

import uuid
from typing import Any, Iterable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.models import Contact
from src.models.enums import ParticipationType


def extract_addresses(parsed: dict[str, Any]) -> dict[str, ParticipationType]:
    """
    Map every address on a message to how it took part.

    A person listed in several headers keeps the strongest role
    (sender, then recipient, then cc).
    """
    participants: dict[str, ParticipationType] = {}

    def add(addresses: Iterable[tuple[str, str]], role: ParticipationType) -> None:
        for _, addr in addresses:
            addr = (addr or "").strip().lower()
            if "@" in addr and addr not in participants:
                participants[addr] = role

    add([parsed.get("from") or ("", "")], ParticipationType.SENDER)
    add(parsed.get("to") or [], ParticipationType.RECIPIENT)
    add(parsed.get("cc") or [], ParticipationType.CC)
    return participants


def is_excluded(address: str, excluded_emails: Iterable[str], excluded_domains: Iterable[str]) -> bool:
    address = address.lower()
    if address in {e.lower() for e in excluded_emails}:
        return True
    domain = address.rsplit("@", 1)[-1]
    return domain in {d.lower().lstrip("@") for d in excluded_domains}


def filter_participants(
    participants: dict[str, ParticipationType],
    user_email: str | None,
    excluded_emails: Iterable[str] = (),
    excluded_domains: Iterable[str] = (),
) -> dict[str, ParticipationType]:
    """Drop the mailbox owner and excluded addresses."""
    own = (user_email or "").lower()
    excluded_emails = list(excluded_emails)
    excluded_domains = list(excluded_domains)
    return {
        addr: role
        for addr, role in participants.items()
        if addr != own and not is_excluded(addr, excluded_emails, excluded_domains)
    }


def match_contacts(db: Session, user_id: uuid.UUID, addresses: Iterable[str]) -> dict[str, Contact]:
    """Return live contacts keyed by lower-cased email, in one query."""
    addresses = {a.lower() for a in addresses}
    if not addresses:
        return {}

    contacts = db.execute(
        select(Contact).where(
            Contact.user_id == user_id,
            Contact.deleted_at.is_(None),
            func.lower(Contact.email).in_(addresses),
        )
    ).scalars()
    return {contact.email.lower(): contact for contact in contacts}
