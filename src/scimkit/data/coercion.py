import json
import math
from collections.abc import Mapping
from typing import Any

from scimkit.data.attrs import Attribute, Complex, DateTime, Unknown
from scimkit.data.scim_data import ScimData
from scimkit.error import InvalidValueError

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _fail(attr: Attribute, value: Any, reason: str) -> InvalidValueError:
    return InvalidValueError(
        f"bad value {value!r} for attribute {str(attr.name)!r}: {reason}",
        attr=str(attr.name),
        value=value,
    )


def _to_integer(attr: Attribute, value: Any) -> int:
    if isinstance(value, bool):
        raise _fail(attr, value, "expected integer")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError as e:
            raise _fail(attr, value, "expected integer") from e
    if not isinstance(value, int):
        raise _fail(attr, value, "expected integer")
    if not INT64_MIN <= value <= INT64_MAX:
        raise _fail(attr, value, "integer out of 64-bit range")
    return value


def _to_decimal(attr: Attribute, value: Any) -> float:
    if isinstance(value, bool):
        raise _fail(attr, value, "expected decimal")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError as e:
            raise _fail(attr, value, "expected decimal") from e
    if isinstance(value, int):
        value = float(value)
    if not isinstance(value, float) or math.isnan(value) or math.isinf(value):
        raise _fail(attr, value, "expected decimal")
    return value


def _to_boolean(attr: Attribute, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise _fail(attr, value, "expected boolean")


def _to_datetime(attr: Attribute, value: Any) -> str:
    if not isinstance(value, str) or DateTime.parse(value) is None:
        raise _fail(attr, value, "expected xsd:dateTime")
    return value


def _to_text(attr: Attribute, value: Any) -> str:
    if not isinstance(value, str):
        raise _fail(attr, value, f"expected {attr.scim_type()}")
    return value


_converters = {
    "integer": _to_integer,
    "decimal": _to_decimal,
    "boolean": _to_boolean,
    "dateTime": _to_datetime,
    "string": _to_text,
    "reference": _to_text,
    "binary": _to_text,
}


def coerce_simple(attr: Attribute, value: Any) -> Any:
    """
    Converts single value to the type declared by the simple attribute. String-encoded
    integers, decimals, and booleans are parsed, date-times are kept as text after checking
    their format.

    Raises:
        InvalidValueError: If the value can not be converted.
    """
    if isinstance(attr, Unknown):
        return value
    if value is None:
        raise _fail(attr, value, "null is not allowed")
    return _converters[attr.scim_type()](attr, value)


def parse_complex(attr: Complex, value: Any) -> ScimData:
    """
    Converts complex value, given as a mapping or JSON-encoded object, to `ScimData`
    with sub-attribute values coerced to their declared types. Keys are renamed to
    the casing used in sub-attribute definitions.

    Raises:
        InvalidValueError: If the value is not an object, or contains unknown sub-attributes,
            or any of sub-attribute values can not be converted.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise _fail(attr, value, "unparsable JSON") from e
    if not isinstance(value, Mapping):
        raise _fail(attr, value, "expected complex value")

    parsed = ScimData()
    for key, sub_value in value.items():
        try:
            sub_attr = attr.attrs.get(key)
        except ValueError as e:
            raise _fail(attr, value, f"bad sub-attribute name {key!r}") from e
        if sub_attr is None:
            raise _fail(attr, value, f"unknown sub-attribute {key!r}")
        parsed.set(sub_attr.name, coerce_value(sub_attr, sub_value))
    return parsed


def coerce_items(attr: Attribute, value: Any) -> list[Any]:
    """
    Converts values of multi-valued attribute. A single value is treated as one-item list,
    JSON-encoded arrays of complex values are decoded.
    """
    if isinstance(value, str) and isinstance(attr, Complex):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError as e:
            raise _fail(attr, value, "unparsable JSON") from e
        value = decoded
    if not isinstance(value, list):
        value = [value]
    if isinstance(attr, Complex):
        return [parse_complex(attr, item) for item in value]
    return [coerce_simple(attr, item) for item in value]


def coerce_single(attr: Attribute, value: Any) -> Any:
    """
    Converts value of single-valued attribute. One-item list is unwrapped.

    Raises:
        InvalidValueError: If more than one value is provided.
    """
    if isinstance(value, list):
        if len(value) != 1:
            raise _fail(attr, value, "too many values for single-valued attribute")
        value = value[0]
    if isinstance(attr, Complex):
        return parse_complex(attr, value)
    return coerce_simple(attr, value)


def coerce_value(attr: Attribute, value: Any) -> Any:
    """
    Converts the value according to attribute's type and cardinality.
    """
    if attr.multi_valued:
        return coerce_items(attr, value)
    return coerce_single(attr, value)
