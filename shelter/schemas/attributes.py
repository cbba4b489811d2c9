"""Typed key/value maps for the open JSON fields.

Animal attributes, person flags, application forms and intake sources are
free-form maps, but every value must be one of a small set of variants
(str, int, float, bool, date, list of str). Keys that the workflow reads
have a declared type per context; unknown keys are accepted as long as the
value is a plain variant.
"""

from datetime import date
from typing import Any, Union

from pydantic import StrictBool, StrictFloat, StrictInt, TypeAdapter, ValidationError

from shelter.core.errors import InvalidAttributes


AttributeValue = Union[StrictBool, StrictInt, StrictFloat, date, str, list[str]]

ANIMAL_ATTRIBUTE_TYPES: dict[str, Any] = {
    "weight_lbs": float,
    "age_months": int,
    "date_of_birth": date,
    "good_with_kids": bool,
    "good_with_dogs": bool,
    "good_with_cats": bool,
    "house_trained": bool,
    "spayed_neutered": bool,
    "temperament": list[str],
    "special_needs": str,
}

PERSON_FLAG_TYPES: dict[str, Any] = {
    "do_not_adopt": bool,
    "do_not_adopt_reason": str,
    "home_check_date": date,
    "has_fenced_yard": bool,
    "has_children": bool,
    "is_renter": bool,
}

APPLICATION_FORM_TYPES: dict[str, Any] = {
    "housing_type": str,
    "has_yard": bool,
    "landlord_approval": bool,
    "hours_alone_per_day": int,
    "other_pets": list[str],
    "experience": str,
}

INTAKE_SOURCE_TYPES: dict[str, Any] = {
    "found_address": str,
    "found_date": date,
    "source_organization": str,
    "surrender_reason": str,
}

_variant_adapter: TypeAdapter = TypeAdapter(AttributeValue)
_adapters: dict[Any, TypeAdapter] = {}


def _adapter_for(value_type: Any) -> TypeAdapter:
    adapter = _adapters.get(value_type)
    if adapter is None:
        adapter = _adapters[value_type] = TypeAdapter(value_type)
    return adapter


def _to_storage(value: Any) -> Any:
    # JSON columns cannot hold date objects
    if isinstance(value, date):
        return value.isoformat()
    return value


def validate_attributes(
    raw: dict[str, Any] | None,
    known_types: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Validate a typed attribute map and return its JSON-storable form.

    Raises:
        InvalidAttributes: Not a mapping, a blank key, or a value that does
            not fit its declared type / the variant set.
    """
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise InvalidAttributes("Attributes must be a key/value object")

    known_types = known_types or {}
    cleaned: dict[str, Any] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key.strip():
            raise InvalidAttributes("Attribute keys must be non-empty strings")
        if value is None:
            continue
        adapter = _adapter_for(known_types[key]) if key in known_types else _variant_adapter
        try:
            parsed = adapter.validate_python(value)
        except ValidationError as exc:
            raise InvalidAttributes(f"Invalid value for attribute '{key}'") from exc
        cleaned[key.strip()] = _to_storage(parsed)
    return cleaned


def validate_animal_attributes(raw: dict[str, Any] | None) -> dict[str, Any]:
    return validate_attributes(raw, ANIMAL_ATTRIBUTE_TYPES)


def validate_person_flags(raw: dict[str, Any] | None) -> dict[str, Any]:
    return validate_attributes(raw, PERSON_FLAG_TYPES)


def validate_application_form(raw: dict[str, Any] | None) -> dict[str, Any]:
    return validate_attributes(raw, APPLICATION_FORM_TYPES)


def validate_intake_source(raw: dict[str, Any] | None) -> dict[str, Any]:
    return validate_attributes(raw, INTAKE_SOURCE_TYPES)
