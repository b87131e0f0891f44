"""
Contact deduplication helpers.

Matching rules, in order:
1. Same normalized email -> EXACT (1.0)
2. Same digits-only phone -> EXACT (0.95)
3. Otherwise average the fuzzy field scores (phone, first/last name, company)
   over the fields present on both sides.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

EXACT_MATCH_THRESHOLD = 1.0
FUZZY_MATCH_THRESHOLD = 0.85
POTENTIAL_MATCH_THRESHOLD = 0.7
PHONE_SIMILARITY_THRESHOLD = 0.8

MATCH_FIELDS = ("first_name", "last_name", "email", "phone", "company")

_SOUNDEX_CODES = {
    **dict.fromkeys("bfpv", "1"),
    **dict.fromkeys("cgjkqsxz", "2"),
    **dict.fromkeys("dt", "3"),
    "l": "4",
    **dict.fromkeys("mn", "5"),
    "r": "6",
}


@dataclass
class DuplicateMatch:
    """Best match between an incoming contact and an existing one."""

    contact_id: Any
    match_type: str
    similarity: float
    matched_fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "contact_id": str(self.contact_id) if self.contact_id is not None else None,
            "match_type": self.match_type,
            "similarity": round(self.similarity, 4),
            "matched_fields": self.matched_fields,
        }


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_phone(phone: str) -> str:
    return "".join(ch for ch in phone if ch.isdigit())


def levenshtein_distance(a: str, b: str) -> int:
    """Edit distance using a single rolling row."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def string_similarity(a: str, b: str) -> float:
    """1 - distance / longest length; identical strings (including empty) score 1.0."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return 1 - levenshtein_distance(a, b) / max(len(a), len(b))


def soundex(value: str) -> str:
    """Four character American Soundex code ("Robert" -> "R163")."""
    letters = [ch for ch in value.lower() if ch.isalpha()]
    if not letters:
        return ""

    first, rest = letters[0], letters[1:]
    encoded = []
    previous = _SOUNDEX_CODES.get(first, "")
    for ch in rest:
        code = _SOUNDEX_CODES.get(ch, "")
        if code and code != previous:
            encoded.append(code)
        # h and w do not separate equal codes; vowels do
        if ch not in "hw":
            previous = code
    return (first.upper() + "".join(encoded) + "000")[:4]


def _get(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def compare_contacts(candidate: Any, existing: Any) -> DuplicateMatch | None:
    """
    Compare two contacts (dicts or Contact rows).

    Args:
        candidate: Incoming contact
        existing: Stored contact; its "id" becomes the match's contact_id

    Returns:
        DuplicateMatch when similarity reaches the potential threshold, else None
    """
    existing_id = _get(existing, "id")
    matched_fields: list[str] = []
    total_score = 0.0
    field_count = 0

    email_a, email_b = _get(candidate, "email"), _get(existing, "email")
    if email_a and email_b:
        field_count += 1
        if normalize_email(email_a) == normalize_email(email_b):
            return DuplicateMatch(existing_id, "EXACT", 1.0, ["email"])

    phone_a, phone_b = _get(candidate, "phone"), _get(existing, "phone")
    if phone_a and phone_b:
        field_count += 1
        digits_a, digits_b = normalize_phone(phone_a), normalize_phone(phone_b)
        if digits_a and digits_a == digits_b:
            return DuplicateMatch(existing_id, "EXACT", 0.95, ["phone"])
        phone_similarity = string_similarity(digits_a, digits_b)
        if phone_similarity > PHONE_SIMILARITY_THRESHOLD:
            matched_fields.append("phone")
            total_score += phone_similarity

    for name in ("first_name", "last_name", "company"):
        value_a, value_b = _get(candidate, name), _get(existing, name)
        if not (value_a and value_b):
            continue
        field_count += 1
        similarity = string_similarity(value_a.strip().lower(), value_b.strip().lower())
        if similarity > FUZZY_MATCH_THRESHOLD:
            matched_fields.append(name)
            total_score += similarity

    if field_count == 0:
        return None

    similarity = total_score / field_count
    if similarity < POTENTIAL_MATCH_THRESHOLD:
        return None

    if similarity >= EXACT_MATCH_THRESHOLD:
        match_type = "EXACT"
    elif similarity >= FUZZY_MATCH_THRESHOLD:
        match_type = "FUZZY"
    else:
        match_type = "POTENTIAL"

    return DuplicateMatch(existing_id, match_type, similarity, matched_fields)


def find_duplicate(candidate: Any, existing: Iterable[Any]) -> DuplicateMatch | None:
    """Return the highest-similarity match for a candidate, or None."""
    best: DuplicateMatch | None = None
    for record in existing:
        match = compare_contacts(candidate, record)
        if match is None:
            continue
        if best is None or match.similarity > best.similarity:
            best = match
            if best.similarity >= EXACT_MATCH_THRESHOLD:
                break
    return best


def batch_find_duplicates(
    candidates: list[Any], existing: list[Any], batch_size: int = 100
) -> dict[int, DuplicateMatch]:
    """
    Find duplicates for many candidates.

    Returns:
        Mapping of candidate index -> best match (unmatched candidates are omitted)
    """
    matches: dict[int, DuplicateMatch] = {}
    for start in range(0, len(candidates), batch_size):
        for offset, candidate in enumerate(candidates[start : start + batch_size]):
            match = find_duplicate(candidate, existing)
            if match:
                matches[start + offset] = match
    return matches


def merge_contact_data(existing: Mapping[str, Any], imported: Mapping[str, Any]) -> dict[str, Any]:
    """
    Merge an imported record into an existing one.
    Non-empty imported values win, tags are unioned and metadata dicts are merged.
    """
    merged = dict(existing)
    for key, value in imported.items():
        if key in ("tags", "metadata"):
            continue
        if value not in (None, ""):
            merged[key] = value

    existing_tags = list(existing.get("tags") or [])
    for tag in imported.get("tags") or []:
        if tag not in existing_tags:
            existing_tags.append(tag)
    merged["tags"] = existing_tags

    merged["metadata"] = {**(existing.get("metadata") or {}), **(imported.get("metadata") or {})}
    return merged
