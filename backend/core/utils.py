import logging
import re
from datetime import date, datetime, timedelta
from typing import Optional, Dict, Any, List

import dateparser
from bson import ObjectId
from bson.errors import InvalidId

from core.errors import ValidationError

logger = logging.getLogger(__name__)

# YYYY-MM-DD, optionally followed by a time part
ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
ISO_TIME_SUFFIX = re.compile(r"^($|[T ]\d{2}:\d{2})")


def normalize_date(value: Optional[str]) -> Optional[str]:
    """
    Normalize a calendar date to YYYY-MM-DD.
    Accepts ISO dates, ISO timestamps and natural language ("tomorrow").
    """
    if not value:
        return None

    if ISO_DATE_PREFIX.match(value):
        if not ISO_TIME_SUFFIX.match(value[10:]):
            return None
        try:
            return date.fromisoformat(value[:10]).isoformat()
        except ValueError:
            return None

    parsed = dateparser.parse(
        value,
        settings={"PREFER_DATES_FROM": "future", "RETURN_AS_TIMEZONE_AWARE": False},
    )
    if not parsed:
        return None
    return parsed.date().isoformat()


def require_date(value: Optional[str], field_name: str = "Date") -> str:
    normalized = normalize_date(value)
    if not normalized:
        raise ValidationError(f"{field_name} parameter is required")
    return normalized


def start_of_week(day: date) -> date:
    """Sunday on or before the given day"""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize_document(doc: Optional[Dict[str, Any]], hidden: List[str] = None) -> Optional[Dict[str, Any]]:
    """Convert a stored document into a JSON friendly dict"""
    if doc is None:
        return None

    hidden = hidden or []
    result = {}
    for key, value in doc.items():
        if key in hidden:
            continue
        if key == "_id":
            key = "id"
        if isinstance(value, ObjectId):
            value = str(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, dict):
            value = serialize_document(value)
        result[key] = value
    return result


def format_appointment_details(appointment: Dict[str, Any]) -> str:
    """Format appointment details for log lines"""
    try:
        day = datetime.strptime(appointment["date"], "%Y-%m-%d")
        formatted_date = day.strftime("%A, %B %d, %Y")
    except (KeyError, ValueError):
        formatted_date = "Date not available"

    status = appointment.get("status", "PENDING").title()
    return f"{formatted_date} at {appointment.get('time', '?')} ({status})"
