import re
from dataclasses import dataclass
from typing import Any, MutableMapping, MutableSequence, Optional, Union

from scimkit.error import BadRequestError

BULK_ID_PREFIX = "bulkId:"
EMBEDDED_BULK_ID_REGEX = re.compile(r"bulkId:([^\"\s,}\]]*)")


def parse_bulk_id_reference(value: Any) -> Optional[str]:
    """
    Returns the referenced bulkId if the `value` is a bulkId reference (`bulkId:<ref>`),
    `None` otherwise.

    Raises:
        BadRequestError: If the value starts with `bulkId:`, but it is not exactly one
            colon-separated, non-empty reference.
    """
    if not isinstance(value, str) or not value.startswith(BULK_ID_PREFIX):
        return None
    parts = value.split(":")
    if len(parts) != 2 or not parts[1]:
        raise BadRequestError(f"the value {value!r} is not a valid bulkId reference", value=value)
    return parts[1]


def find_embedded_bulk_ids(value: str) -> list[str]:
    """
    Returns bulkIds referenced anywhere in the string, which may be a serialized JSON
    fragment, in order of appearance and without repetitions.

    Raises:
        BadRequestError: If any of the found references is malformed.
    """
    bulk_ids = []
    for match in EMBEDDED_BULK_ID_REGEX.finditer(value):
        bulk_id = parse_bulk_id_reference(match.group(0))
        if bulk_id not in bulk_ids:
            bulk_ids.append(bulk_id)
    return bulk_ids


@dataclass
class AttributeReference:
    """Attribute value of a resource (fragment) that is a bulkId reference."""

    container: MutableMapping[str, Any]
    key: str
    bulk_id: str

    def replace(self, resource_id: str) -> None:
        self.container[self.key] = resource_id


@dataclass
class ArrayElementReference:
    """Item of multi-valued attribute value that is a bulkId reference."""

    array: MutableSequence[Any]
    index: int
    bulk_id: str

    def replace(self, resource_id: str) -> None:
        self.array[self.index] = resource_id


@dataclass
class PatchValueReference:
    """
    Reference embedded in the string value of patch operation. The string can be the reference
    itself, or a serialized fragment containing it, so every occurrence is replaced in place.
    If `index` is provided, the value is a list and the string is its `index`-th item.
    """

    operation: MutableMapping[str, Any]
    bulk_id: str
    index: Optional[int] = None

    def replace(self, resource_id: str) -> None:
        def substitute(match: re.Match) -> str:
            if match.group(1) == self.bulk_id:
                return resource_id
            return match.group(0)

        if self.index is None:
            self.operation["value"] = EMBEDDED_BULK_ID_REGEX.sub(
                substitute, self.operation["value"]
            )
            return
        values = self.operation["value"]
        values[self.index] = EMBEDDED_BULK_ID_REGEX.sub(substitute, values[self.index])


@dataclass
class UriSegmentReference:
    """Resource identifier segment of the bulk operation path, e.g. `/Users/bulkId:qwerty`."""

    segments: MutableSequence[str]
    index: int
    bulk_id: str

    def replace(self, resource_id: str) -> None:
        self.segments[self.index] = resource_id


BulkIdReference = Union[
    AttributeReference,
    ArrayElementReference,
    PatchValueReference,
    UriSegmentReference,
]
