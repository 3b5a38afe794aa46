import re
from typing import Any, Optional
from uuid import uuid4

OP_REGEX = re.compile(r"\s+", flags=re.DOTALL)
PLACEHOLDER_REGEX = re.compile(r"\|&PLACE_HOLDER_(\w+)&\|")
STRING_VALUES_REGEX = re.compile(r"'(.*?)'|\"(.*?)\"", flags=re.DOTALL)


def get_placeholder() -> tuple[str, str]:
    id_ = uuid4().hex
    return id_, f"|&PLACE_HOLDER_{id_}&|"


def deserialize_placeholder(exp: str) -> Optional[str]:
    match = PLACEHOLDER_REGEX.fullmatch(exp)
    if match:
        return match.group(1)
    return None


def encode_strings(exp: str) -> tuple[str, dict[str, Any]]:
    """
    Replaces every quoted string in the expression with a placeholder, so keywords and
    brackets inside string literals do not interfere with parsing.
    """
    placeholders: dict[str, Any] = {}
    for match in STRING_VALUES_REGEX.finditer(exp):
        string_value = match.group(0)
        id_, placeholder = get_placeholder()
        placeholders[id_] = string_value
        exp = exp.replace(string_value, placeholder, 1)
    return exp, placeholders


def decode_placeholders(exp: str, placeholders: dict[str, Any]) -> str:
    decoded = exp
    for match in PLACEHOLDER_REGEX.finditer(exp):
        id_ = match.group(1)
        if id_ in placeholders:
            decoded = decoded.replace(match.group(0), str(placeholders[id_]))
    return decoded


def deserialize_comparison_value(value: str) -> Any:
    """
    Deserializes filter operand: quoted strings, `true`, `false`, `null`, and numbers.

    Raises:
        ValueError: If the value is none of the above.
    """
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    if value == "false":
        return False
    if value == "true":
        return True
    if value == "null":
        return None
    if value.lower() in ("nan", "inf", "-inf", "+inf", "infinity", "-infinity", "+infinity"):
        raise ValueError(f"{value!r} is not a valid number")
    if "." not in value and "e" not in value.lower():
        return int(value)
    return float(value)
