from datetime import datetime
from typing import Optional


def make_etag(updated_at: Optional[datetime]) -> Optional[str]:
    if updated_at is None:
        return None
    return f'"{updated_at.isoformat()}"'


def parse_if_match(header: Optional[str]) -> Optional[str]:
    """If-Match carries the updated_at we handed out as ETag."""
    if not header or header.strip() == "*":
        return None
    value = header.strip()
    if value.startswith("W/"):
        value = value[2:]
    return value.strip('"') or None
