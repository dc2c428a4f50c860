"""Validation of ticket form data against a ticket type's declared fields.

Form data is a flat mapping of field name to a string, number or boolean
(dates travel as ISO strings, multi-selects as lists of strings). Values
are validated but stored exactly as submitted so the data reads back
unchanged. Keys without a declared field are kept as long as they are flat.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from django.core.exceptions import ValidationError
from django.core.validators import URLValidator, validate_email
from django.utils.dateparse import parse_date, parse_datetime

from helpdesk_service.errors import InvalidArgument

from .models import TicketFormField

FormValue = Union[str, int, float, bool, List[str], None]

_validate_url = URLValidator()


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def _check_length(field: TicketFormField, value: str) -> Optional[str]:
    if field.min_length is not None and len(value) < field.min_length:
        return f"{field.label} must be at least {field.min_length} characters."
    if field.max_length is not None and len(value) > field.max_length:
        return f"{field.label} must be at most {field.max_length} characters."
    return None


def _check_field(field: TicketFormField, value: Any) -> Optional[str]:
    kind = field.field_type
    label = field.label

    if kind == TicketFormField.CHECKBOX:
        return None if isinstance(value, bool) else f"{label} must be true or false."

    if kind == TicketFormField.NUMBER:
        if not _is_number(value):
            return f"{label} must be a number."
        number = float(value)
        if field.min_value is not None and number < field.min_value:
            return f"{label} must be at least {field.min_value:g}."
        if field.max_value is not None and number > field.max_value:
            return f"{label} must be at most {field.max_value:g}."
        return None

    if kind == TicketFormField.MULTISELECT:
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            return f"{label} must be a list of options."
        allowed = field.option_values
        unknown = [item for item in value if item not in allowed]
        return f"{label} contains an invalid option: {unknown[0]}." if unknown else None

    if not isinstance(value, str):
        return f"{label} must be text."

    if kind in {TicketFormField.SELECT, TicketFormField.RADIO}:
        return None if value in field.option_values else f"{label} must be one of the listed options."

    if kind == TicketFormField.EMAIL:
        try:
            validate_email(value)
        except ValidationError:
            return f"{label} must be a valid email address."

    if kind == TicketFormField.URL:
        try:
            _validate_url(value)
        except ValidationError:
            return f"{label} must be a valid URL."

    if kind == TicketFormField.DATE:
        try:
            parsed = parse_date(value)
        except ValueError:
            parsed = None
        if parsed is None:
            return f"{label} must be a date (YYYY-MM-DD)."

    if kind == TicketFormField.DATETIME:
        try:
            parsed_at = parse_datetime(value)
        except ValueError:
            parsed_at = None
        if parsed_at is None:
            return f"{label} must be a date and time."

    return _check_length(field, value)


def _is_flat(value: Any) -> bool:
    if value is None or isinstance(value, (str, int, float, bool)):
        return True
    if isinstance(value, list):
        return all(isinstance(item, (str, int, float, bool)) for item in value)
    return False


def validate_form_data(
    fields: Iterable[TicketFormField], data: Optional[Mapping[str, Any]]
) -> Dict[str, FormValue]:
    """Return the form data unchanged, or raise ``InvalidArgument`` listing every problem."""

    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise InvalidArgument("Form data must be an object.")

    errors: List[str] = []
    for field in fields:
        value = data.get(field.name)
        if _is_empty(value):
            if field.required:
                errors.append(f"{field.label} is required.")
            continue
        problem = _check_field(field, value)
        if problem:
            errors.append(problem)

    for key, value in data.items():
        if not isinstance(key, str) or not key:
            errors.append("Form field names must be non-empty strings.")
        elif not _is_flat(value):
            errors.append(f"{key} must be a plain value.")

    if errors:
        raise InvalidArgument("The form data is invalid.", errors=errors)
    return dict(data)


def describe_form_data(
    fields: Iterable[TicketFormField], data: Mapping[str, Any]
) -> List[Dict[str, Any]]:
    """Pair submitted values with their field labels, in form order."""

    described = []
    seen = set()
    for field in fields:
        seen.add(field.name)
        if field.name in data:
            described.append(
                {"name": field.name, "label": field.label, "type": field.field_type, "value": data[field.name]}
            )
    for key, value in data.items():
        if key not in seen:
            described.append({"name": key, "label": key, "type": None, "value": value})
    return described
