"""
Input checks shared by the scheduling services.

All of these run before the store is touched and raise InvalidInput with a
message naming the offending field.
"""

import re
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from simbooking.config import ValidationConfig
from simbooking.errors import InvalidInput
from simbooking.utils import normalize_phone

ModelT = TypeVar("ModelT", bound=BaseModel)


def require_fields(**fields: Optional[str]) -> None:
    """Reject blank or missing required string fields, listing all of them."""
    missing = [
        field_name
        for field_name, value in fields.items()
        if value is None or not str(value).strip()
    ]
    if missing:
        raise InvalidInput(f"Missing required fields: {', '.join(missing)}")


def validate_name(value: str, rules: ValidationConfig) -> str:
    name = (value or "").strip()
    if not rules.min_name_length <= len(name) <= rules.max_name_length:
        raise InvalidInput(
            f"customer_name must be {rules.min_name_length}-{rules.max_name_length} characters"
        )
    return name


def validate_phone(value: str, rules: ValidationConfig) -> str:
    """Return the normalized phone number when it has an acceptable digit count."""
    digits = re.sub(r"[^\d]", "", value or "")
    if not rules.min_phone_digits <= len(digits) <= rules.max_phone_digits:
        raise InvalidInput(
            f"customer_phone must have {rules.min_phone_digits}-{rules.max_phone_digits} digits"
        )
    return normalize_phone(value)


def validate_positive_minutes(value: int, field_name: str, maximum: Optional[int] = None) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise InvalidInput(f"{field_name} must be a positive whole number of minutes, got {value!r}")
    if maximum is not None and value > maximum:
        raise InvalidInput(f"{field_name} must be at most {maximum}, got {value}")
    return value


def validate_party_size(value: int, rules: ValidationConfig) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= rules.max_party_size:
        raise InvalidInput(f"party_size must be between 1 and {rules.max_party_size}, got {value!r}")
    return value


def invalid_input_from(exc: ValidationError) -> InvalidInput:
    """Flatten a pydantic ValidationError into one InvalidInput message."""
    problems = [
        f"{'.'.join(str(part) for part in err['loc']) or 'value'}: {err['msg']}"
        for err in exc.errors()
    ]
    return InvalidInput("; ".join(problems))


def coerce(model: type[ModelT], data: "ModelT | dict[str, Any]") -> ModelT:
    """Accept a request model or a plain mapping from the transport layer."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise invalid_input_from(exc) from exc
