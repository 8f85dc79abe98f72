"""
Firestore query and document helpers.

NOTE: For firebase_admin SDK, we use positional arguments for where().
The deprecation warning is just a warning - the functionality is still supported.
"""

from datetime import datetime, timezone
from typing import Dict
import logging

logger = logging.getLogger(__name__)

TIMESTAMP_FIELDS = ("created_at", "updated_at")


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "status", "==", "open")
        query = where_filter(query, "category", "==", "pothole")
    """
    return query.where(field_path, op_string, value)


def to_datetime(value) -> datetime:
    """
    Convert a Firestore timestamp value to an aware UTC datetime.

    Firestore returns DatetimeWithNanoseconds (a datetime subclass); older
    clients may hand back objects exposing to_datetime().
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if hasattr(value, "to_datetime"):
        return to_datetime(value.to_datetime())
    raise ValueError(f"Unsupported timestamp value: {type(value)}")


def snapshot_to_dict(snapshot) -> Dict:
    """Document snapshot to dict with its ID and normalized timestamps."""
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    for field in TIMESTAMP_FIELDS:
        if data.get(field) is not None:
            data[field] = to_datetime(data[field])
    return data
