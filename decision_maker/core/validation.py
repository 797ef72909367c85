"""
Input validation utilities.

This module provides validation and normalization functions for user inputs
(search queries, statuses, coordinates, numeric limits).
"""

import math
from typing import Any, Iterable

from decision_maker.core.constants import (
    MAX_QUERY_LENGTH,
    MAX_USER_RATING,
    MIN_USER_RATING,
)
from decision_maker.core.exceptions import ValidationError


def validate_query(query: str | None, label: str = "Search") -> str:
    """
    Validate a free-text search query.

    Args:
        query: Query to validate
        label: Name used in user-facing messages

    Returns:
        Stripped query

    Raises:
        ValidationError: If the query is empty or too long
    """
    query = (query or "").strip()

    if not query:
        raise ValidationError(f"Empty {label.lower()} query", user_message="Please enter search.")

    if len(query) > MAX_QUERY_LENGTH:
        raise ValidationError(
            f"{label} query too long ({len(query)} chars)",
            user_message=f"{label} is too long (maximum {MAX_QUERY_LENGTH} characters)",
        )

    return query


def validate_status(status: str | None, allowed: Iterable[str]) -> str | None:
    """
    Validate an item status.

    ``None`` (or an empty string) means "clear the status".

    Raises:
        ValidationError: If the status is not one of ``allowed``
    """
    if status is None or status == "":
        return None
    allowed = tuple(allowed)
    if status not in allowed:
        raise ValidationError(
            f"Unknown status {status!r}",
            user_message=f"Status must be one of: {', '.join(allowed)}",
        )
    return status


def parse_float(value: Any) -> float | None:
    """Parse a number or numeric string, returning None when it is not finite."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def parse_int(value: Any) -> int | None:
    """Leading-integer parse in the spirit of ``parseInt``: "12abc" -> 12."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    text = str(value).strip()
    digits = ""
    for i, ch in enumerate(text):
        if ch.isdigit() or (i == 0 and ch in "+-"):
            digits += ch
        else:
            break
    try:
        return int(digits)
    except ValueError:
        return None


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def normalize_positive_integer(value: Any, min_val: int = 1, max_val: int | None = None) -> int | None:
    number = parse_int(value)
    if number is None:
        return None
    number = max(number, min_val)
    if max_val is not None:
        number = min(number, max_val)
    return number


def validate_coordinates(latitude: Any, longitude: Any) -> tuple[float, float]:
    """
    Validate a latitude/longitude pair.

    Raises:
        ValidationError: If either value is missing or out of range
    """
    lat = parse_float(latitude)
    lon = parse_float(longitude)
    if lat is None or lon is None:
        raise ValidationError("Missing coordinates", user_message="A valid location is required.")
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
        raise ValidationError(
            f"Coordinates out of range: {lat},{lon}",
            user_message="Latitude must be within ±90 and longitude within ±180.",
        )
    return lat, lon


def clamp_user_rating(value: Any) -> float | None:
    """Clamp a movie rating to 0..10 and round it to the nearest half point."""
    rating = parse_float(value)
    if rating is None:
        return None
    rating = clamp(rating, MIN_USER_RATING, MAX_USER_RATING)
    return math.floor(rating * 2 + 0.5) / 2
