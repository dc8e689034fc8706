# core/utils.py

from datetime import datetime, time, timezone
from typing import Optional


def sanitize(data: dict) -> dict:
    """
    Sanitize dictionary data before it is written to Supabase:
    - Empty strings → None
    - Preserve booleans, None values
    - Strip string whitespace

    Numeric-looking strings are kept as strings: flat numbers, phone
    numbers and invite codes must keep their leading zeros.
    """
    clean = {}

    for k, v in data.items():
        if isinstance(v, str):
            stripped = v.strip()
            clean[k] = stripped or None
            continue

        clean[k] = v

    return clean


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


# -----------------------------------------------------
# Wall-clock times ("HH:MM") as stored in Supabase
# -----------------------------------------------------
def parse_time_of_day(value) -> Optional[time]:
    """Accepts "HH:MM", "HH:MM:SS" or a time; blank → None."""
    if value is None or isinstance(value, time):
        return value
    value = str(value).strip()
    if not value:
        return None
    return time.fromisoformat(value)


def format_time_of_day(value: Optional[time]) -> Optional[str]:
    if value is None:
        return None
    return value.strftime("%H:%M")


def parse_timestamp(value) -> Optional[datetime]:
    """Parse Supabase timestamps, including trailing-Z forms."""
    if value is None or isinstance(value, datetime):
        return value
    value = str(value)
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


# -----------------------------------------------------
# Units
# -----------------------------------------------------
def normalize_wing(wing: Optional[str]) -> Optional[str]:
    """Wings are stored upper-case; blank means the building has none."""
    if wing is None:
        return None
    wing = wing.strip().upper()
    return wing or None


def format_unit(wing: Optional[str], flat_number: str) -> str:
    return f"{wing}-{flat_number}" if wing else flat_number
