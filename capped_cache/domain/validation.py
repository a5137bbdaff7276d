from __future__ import annotations

from numbers import Real
from typing import Any

from .constraints import MAX_KEY_LENGTH
from .errors import ValidationError
from .models import MISSING


def validate_key(key: str) -> None:
    if key is None or key == "":
        raise ValidationError("Key is required")
    if not isinstance(key, str):
        raise ValidationError("Key must be a string")
    if len(key) > MAX_KEY_LENGTH:
        raise ValidationError(f"Key is too long (max {MAX_KEY_LENGTH})")


def validate_value(value: Any) -> None:
    if value is MISSING:
        raise ValidationError("Value is required")


def validate_max_age(max_age_minutes: float) -> None:
    if isinstance(max_age_minutes, bool) or not isinstance(max_age_minutes, Real):
        raise ValidationError("Max age must be a number")
    # also rejects NaN
    if not max_age_minutes > 0:
        raise ValidationError("Max age must be positive")
