import re
from typing import Any, Optional, Union, cast

from scimkit.error import ValidationError, ValidationIssues
from scimkit.registry import schemas

_NAME = r"(?:[a-zA-Z][\w$-]*|\$ref)"
_URI = r"[\w.-]+(?::[\w.-]+)*"

_ATTR_NAME = re.compile(_NAME)
_SCHEMA_URI = re.compile(_URI)
_ATTR_REP = re.compile(
    rf"(?:(?P<schema>{_URI}):)?(?P<attr>{_NAME})(?:\.(?P<sub_attr>{_NAME}))?"
)


class _CaseInsensitiveStr(str):
    def __eq__(self, other: Any) -> bool:
        return isinstance(other, str) and self.lower() == other.lower()

    def __ne__(self, other: Any) -> bool:
        return not self.__eq__(other)

    def __hash__(self):
        return hash(self.lower())


class AttrName(_CaseInsensitiveStr):
    """
    Name of an attribute or sub-attribute, e.g. `userName`, or `$ref`. Compared and hashed
    case-insensitively, as required by RFC-7643, section 2.1.

    Raises:
        ValueError: If the provided value does not follow attribute name notation.
    """

    def __new__(cls, value: str) -> "AttrName":
        if not isinstance(value, AttrName) and not _ATTR_NAME.fullmatch(value):
            raise ValueError(f"{value!r} is not valid attr name")
        return cast(AttrName, str.__new__(cls, value))

    def __repr__(self):
        return f"AttrName({self})"


class SchemaUri(_CaseInsensitiveStr):
    """
    URI of a schema or a schema extension, compared and hashed case-insensitively.

    Raises:
        ValueError: If the provided value is not a colon-separated URI.
    """

    def __new__(cls, value: str) -> "SchemaUri":
        if not isinstance(value, SchemaUri) and not _SCHEMA_URI.fullmatch(value):
            raise ValueError(f"{value!r} is not a valid schema URI")
        return cast(SchemaUri, str.__new__(cls, value))


def is_registered_schema_uri(value: str) -> bool:
    """Tells whether `value` is URI of a registered schema or schema extension."""
    try:
        return SchemaUri(value) in schemas
    except ValueError:
        return False


class AttrRep:
    """
    Attribute or sub-attribute reference that is not bound to any schema, e.g. `userName`,
    or `emails.value`.
    """

    def __init__(self, attr: str, sub_attr: Optional[str] = None):
        self._attr = AttrName(attr)
        self._sub_attr = None if sub_attr is None else AttrName(sub_attr)

    def __str__(self) -> str:
        if self._sub_attr is None:
            return str(self._attr)
        return f"{self._attr}.{self._sub_attr}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, AttrRep):
            return False
        return self._names() == other._names()

    def __hash__(self):
        return hash(self._names())

    def _names(self) -> tuple[AttrName, Optional[AttrName]]:
        return self._attr, self._sub_attr

    @property
    def attr(self) -> AttrName:
        return self._attr

    @property
    def sub_attr(self) -> AttrName:
        """
        Raises:
            AttributeError: If the reference points to a top-level attribute.
        """
        if self._sub_attr is None:
            raise AttributeError(f"{self!r} has no sub-attribute")
        return self._sub_attr

    @property
    def is_sub_attr(self) -> bool:
        return self._sub_attr is not None

    @property
    def location(self) -> tuple[str, ...]:
        """Keys leading to the referenced value within resource data."""
        return tuple(name for name in self._names() if name is not None)


class BoundedAttrRep(AttrRep):
    """
    Attribute or sub-attribute reference bound to a registered schema, e.g.
    `urn:ietf:params:scim:schemas:extension:enterprise:2.0:User:manager.value`.

    Raises:
        ValueError: If `schema` is not registered.
    """

    def __init__(self, schema: str, attr: str, sub_attr: Optional[str] = None):
        super().__init__(attr, sub_attr)
        self._schema = SchemaUri(schema)
        extension = schemas.get(self._schema)
        if extension is None:
            raise ValueError(f"unknown schema {self._schema!r}")
        self._extension: bool = extension

    def __str__(self) -> str:
        return f"{self._schema}:{super().__str__()}"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, BoundedAttrRep) and self._schema != other._schema:
            return False
        return super().__eq__(other)

    def __hash__(self):
        return hash((self._schema, *self._names()))

    @property
    def schema(self) -> SchemaUri:
        return self._schema

    @property
    def extension(self) -> bool:
        """Whether the attribute belongs to a schema extension, not the main schema."""
        return self._extension

    @property
    def location(self) -> tuple[str, ...]:
        # extension attributes live in the namespace keyed by the extension URI
        if self._extension:
            return (self._schema, *super().location)
        return super().location

    def parent(self) -> "BoundedAttrRep":
        """Returns reference to the top-level attribute, or itself if it already is one."""
        if self._sub_attr is None:
            return self
        return BoundedAttrRep(schema=self._schema, attr=self._attr)


class AttrRepFactory:
    """
    Validates and deserializes attribute references found in paths and filters.
    """

    @staticmethod
    def _match(value: str) -> Optional[re.Match]:
        match = _ATTR_REP.fullmatch(value)
        if match is None:
            return None
        schema = match.group("schema")
        if schema is not None and SchemaUri(schema) not in schemas:
            return None
        return match

    @classmethod
    def validate(cls, value: str) -> ValidationIssues:
        issues = ValidationIssues()
        if cls._match(value) is None:
            issues.add_error(issue=ValidationError.bad_attribute_name(value), proceed=False)
        return issues

    @classmethod
    def deserialize(cls, value: str) -> Union[AttrRep, BoundedAttrRep]:
        """
        Raises:
            ValueError: If `value` is not valid attribute reference, or it is prefixed with
                URI of not registered schema.

        Examples:
            >>> AttrRepFactory.deserialize("name.formatted")
            AttrRep(name.formatted)
            >>> AttrRepFactory.deserialize("urn:ietf:params:scim:schemas:core:2.0:Group:members")
            BoundedAttrRep(urn:ietf:params:scim:schemas:core:2.0:Group:members)
        """
        if isinstance(value, AttrName):
            return AttrRep(attr=value)

        match = cls._match(value)
        if match is None:
            raise ValueError(f"{value!r} is not valid attribute representation")

        schema, attr, sub_attr = match.group("schema", "attr", "sub_attr")
        if schema is None:
            return AttrRep(attr=attr, sub_attr=sub_attr)
        return BoundedAttrRep(schema=schema, attr=attr, sub_attr=sub_attr)
