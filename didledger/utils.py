import hashlib
import json
from datetime import UTC, date, datetime
from typing import Any, Mapping, Optional


def canonical_json(data: Any) -> str:
    """Serializes data deterministically: sorted keys, compact separators, UTF-8 kept as is."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

def content_hash(data: Any) -> str:
    """Returns the '0x'-prefixed SHA-256 of a string, or of the canonical JSON of anything else.

    Credentials are hashed over their stored serialized text so the same hash
    is recomputed at issuance, revocation and verification time.
    """
    text = data if isinstance(data, str) else canonical_json(data)
    return "0x" + hashlib.sha256(text.encode("utf-8")).hexdigest()

def strip_proof(document: Mapping[str, Any]) -> dict:
    return {key: value for key, value in document.items() if key != "proof"}

def utcnow() -> datetime:
    return datetime.now(UTC)

def isoformat_z(dt: datetime) -> str:
    """Formats an aware datetime as ISO 8601 with a 'Z' suffix and millisecond precision."""
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def parse_datetime_utc(date_str: str) -> datetime:
    try:
        if date_str.endswith("Z"):
            dt = datetime.fromisoformat(date_str.replace("Z", "+00:00"))
        else:
            dt = datetime.fromisoformat(date_str)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)
    except ValueError as e:
        raise ValueError(f"Could not parse date string: {date_str}. Error: {e}")

def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; stored values are always UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)

def calculate_age(birth_date: date, today: Optional[date] = None) -> int:
    """Age in whole years; the birthday itself counts as reached."""
    today = today or utcnow().date()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age
