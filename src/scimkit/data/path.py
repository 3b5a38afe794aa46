import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from scimkit.data.attrs import Attribute, Complex
from scimkit.data.filter import Filter
from scimkit.data.identifiers import (
    AttrName,
    AttrRep,
    AttrRepFactory,
    BoundedAttrRep,
    SchemaUri,
    is_registered_schema_uri,
)
from scimkit.data.schemas import ResourceSchema
from scimkit.data.utils import decode_placeholders, encode_strings
from scimkit.error import InvalidPathError, ScimErrorType, ValidationError, ValidationIssues

logger = logging.getLogger(__name__)


class PatchPath:
    """
    Target modification path, used in PATCH requests. Supports path syntax, as specified in
    [RFC-7644, section 3.5.2](https://www.rfc-editor.org/rfc/rfc7644#section-3.5.2), and
    paths consisting of the schema extension URI only.

    Examples:
        >>> PatchPath.deserialize('emails[type eq "work"].value')
        PatchPath(emails[type eq "work"].value)
        >>> PatchPath.deserialize("urn:ietf:params:scim:schemas:extension:enterprise:2.0:User")
        PatchPath(urn:ietf:params:scim:schemas:extension:enterprise:2.0:User)
    """

    def __init__(
        self,
        attr_rep: Optional[AttrRep],
        sub_attr_name: Optional[str] = None,
        filter_: Optional[Filter] = None,
        extension: Optional[str] = None,
    ):
        """
        Args:
            attr_rep: The representation of the attribute being targeted. Must not be
                a sub-attribute representation.
            sub_attr_name: The optional sub-attribute being targeted.
            filter_: Value selection filter, used for multi-valued complex attributes.
            extension: Schema extension URI, if the path targets the whole extension
                namespace. Mutually exclusive with `attr_rep`.

        Raises:
            ValueError: When `attr_rep` is a sub-attribute representation.
            ValueError: When neither or both `attr_rep` and `extension` are provided.
        """
        if (attr_rep is None) == (extension is None):
            raise ValueError("exactly one of 'attr_rep' and 'extension' must be provided")
        if attr_rep is not None and attr_rep.is_sub_attr:
            raise ValueError("'attr_rep' must not be a sub attribute")
        if extension is not None and (sub_attr_name is not None or filter_ is not None):
            raise ValueError("extension path can not target sub-attribute or filter values")

        self._attr_rep = attr_rep
        self._sub_attr_name = AttrName(sub_attr_name) if sub_attr_name is not None else None
        self._filter = filter_
        self._extension = SchemaUri(extension) if extension is not None else None

    @property
    def attr_rep(self) -> Optional[AttrRep]:
        return self._attr_rep

    @property
    def sub_attr_name(self) -> Optional[AttrName]:
        return self._sub_attr_name

    @property
    def filter(self) -> Optional[Filter]:
        return self._filter

    @property
    def extension(self) -> Optional[SchemaUri]:
        return self._extension

    @property
    def has_filter(self) -> bool:
        return self._filter is not None

    @classmethod
    def validate(cls, path_exp: str) -> ValidationIssues:
        """
        Validates the provided path expression syntax, according to RFC-7644. Whether the
        path exists in a particular schema is checked with `resolve_path`.
        """
        issues = ValidationIssues()
        if is_registered_schema_uri(path_exp):
            return issues

        encoded, placeholders = encode_strings(path_exp)
        if (
            encoded.count("[") > 1
            or encoded.count("]") > 1
            or ("[" in encoded) != ("]" in encoded)
            or ("[" in encoded and encoded.index("[") > encoded.index("]"))
        ):
            issues.add_error(issue=ValidationError.bad_value_syntax(), proceed=False)
        elif "[" in encoded:
            issues.merge(cls._validate_value_path(encoded, placeholders))
        else:
            issues.merge(AttrRepFactory.validate(path_exp))

        for _, errors in issues.errors:
            for error in errors:
                error.scim_error = ScimErrorType.INVALID_PATH
        return issues

    @classmethod
    def _validate_value_path(cls, encoded: str, placeholders: dict[str, Any]) -> ValidationIssues:
        issues = ValidationIssues()
        attr_exp = encoded[: encoded.index("[")]
        attr_issues = AttrRepFactory.validate(attr_exp)
        if attr_issues.has_errors():
            return attr_issues
        if AttrRepFactory.deserialize(attr_exp).is_sub_attr:
            issues.add_error(
                issue=ValidationError.bad_attribute_name(attr_exp),
                proceed=False,
            )
            return issues

        filter_exp = decode_placeholders(
            encoded[encoded.index("[") + 1 : encoded.index("]")], placeholders
        )
        if filter_exp.strip() == "":
            issues.add_error(
                issue=ValidationError.empty_complex_attribute_expression(attr_exp),
                proceed=False,
            )
            return issues
        issues.merge(Filter.validate(filter_exp))
        if issues.has_errors():
            return issues

        sub_attr_exp = encoded[encoded.index("]") + 1 :]
        if sub_attr_exp:
            try:
                if not sub_attr_exp.startswith("."):
                    raise ValueError(sub_attr_exp)
                AttrName(sub_attr_exp[1:])
            except ValueError:
                issues.add_error(
                    issue=ValidationError.bad_attribute_name(sub_attr_exp),
                    proceed=False,
                )
        return issues

    @classmethod
    def deserialize(cls, path_exp: str) -> "PatchPath":
        """
        Deserializes the provided path expression into a `PatchPath`.

        Raises:
            ValueError: When `path_exp` is not a valid path expression.
        """
        if cls.validate(path_exp).has_errors():
            raise ValueError(f"invalid path expression {path_exp!r}")

        if is_registered_schema_uri(path_exp):
            return cls(attr_rep=None, extension=path_exp)

        encoded, placeholders = encode_strings(path_exp)
        if "[" not in encoded:
            attr_rep = AttrRepFactory.deserialize(path_exp)
            sub_attr_name = attr_rep.sub_attr if attr_rep.is_sub_attr else None
            return cls(attr_rep=_top_level(attr_rep), sub_attr_name=sub_attr_name)

        attr_rep = AttrRepFactory.deserialize(encoded[: encoded.index("[")])
        filter_ = Filter.deserialize(
            decode_placeholders(encoded[encoded.index("[") + 1 : encoded.index("]")], placeholders)
        )
        sub_attr_exp = encoded[encoded.index("]") + 1 :]
        return cls(
            attr_rep=attr_rep,
            sub_attr_name=sub_attr_exp[1:] if sub_attr_exp else None,
            filter_=filter_,
        )

    def serialize(self) -> str:
        if self._extension is not None:
            return str(self._extension)
        serialized = str(self._attr_rep)
        if self._filter is not None:
            serialized += f"[{self._filter.serialize()}]"
        if self._sub_attr_name is not None:
            serialized += f".{self._sub_attr_name}"
        return serialized

    def __repr__(self) -> str:
        return f"PatchPath({self.serialize()})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, PatchPath):
            return False
        return self.serialize().lower() == other.serialize().lower()


def _top_level(attr_rep: AttrRep) -> AttrRep:
    if isinstance(attr_rep, BoundedAttrRep):
        return attr_rep.parent()
    return AttrRep(attr=attr_rep.attr)


@dataclass(frozen=True)
class ResolvedPath:
    """
    Schema-bound interpretation of `PatchPath`. Names are in the same casing as in
    the attribute definitions.
    """

    attr_rep: Optional[BoundedAttrRep] = None
    attr: Optional[Attribute] = None
    sub_attr_name: Optional[AttrName] = None
    sub_attr: Optional[Attribute] = None
    filter: Optional[Filter] = None
    extension: Optional[SchemaUri] = None

    @property
    def is_extension(self) -> bool:
        """Flag indicating whether the path targets the whole schema extension namespace."""
        return self.extension is not None

    @property
    def has_child(self) -> bool:
        """Flag indicating whether filtered elements are narrowed down to a sub-attribute."""
        return self.filter is not None and self.sub_attr is not None

    @property
    def target(self) -> Optional[Attribute]:
        """The attribute whose value is written, if the path is not an extension path."""
        return self.sub_attr or self.attr

    @property
    def sub_attr_rep(self) -> Optional[BoundedAttrRep]:
        if self.attr_rep is None or self.sub_attr_name is None:
            return None
        return BoundedAttrRep(
            schema=self.attr_rep.schema, attr=self.attr_rep.attr, sub_attr=self.sub_attr_name
        )

    def __str__(self) -> str:
        if self.extension is not None:
            return str(self.extension)
        output = str(self.attr_rep)
        if self.filter is not None:
            output += f"[{self.filter.serialize()}]"
        if self.sub_attr_name is not None:
            output += f".{self.sub_attr_name}"
        return output


def resolve_path(path: Union[str, PatchPath], schema: ResourceSchema) -> ResolvedPath:
    """
    Resolves the path against the resource schema and its extensions. Names are matched
    case-insensitively. Names qualified with schema URI are looked up in that schema only,
    unqualified names are looked up in the base schema first, then in the extensions.

    Raises:
        InvalidPathError: If the path is malformed, or any of its segments does not match
            known attribute, or unqualified name is ambiguous, or value selection filter
            targets attribute that is not multi-valued complex one.
    """
    if isinstance(path, str):
        issues = PatchPath.validate(path)
        if (first := issues.first_error()) is not None:
            raise InvalidPathError(f"bad path {path!r}: {first[1].message}", path=path)
        path = PatchPath.deserialize(path)

    if path.extension is not None:
        if path.extension not in schema.extensions:
            raise InvalidPathError(
                f"{schema.name!r} resource has no extension {str(path.extension)!r}",
                path=path.serialize(),
            )
        logger.debug("Path %r resolved to extension namespace", path.serialize())
        return ResolvedPath(extension=path.extension)

    attr_rep = path.attr_rep
    if (
        not isinstance(attr_rep, BoundedAttrRep)
        and attr_rep.attr in schema.ambiguous_attrs
        and schema.attrs.get(BoundedAttrRep(schema=schema.schema, attr=attr_rep.attr)) is None
    ):
        raise InvalidPathError(
            f"attribute {str(attr_rep.attr)!r} is ambiguous, it must be qualified with schema URI",
            path=path.serialize(),
        )

    bounded = schema.attrs.bind(attr_rep)
    attr = schema.attrs.get(bounded) if bounded is not None else None
    if bounded is None or attr is None:
        raise InvalidPathError(
            f"unknown attribute {str(attr_rep)!r} in {schema.name!r} resource",
            path=path.serialize(),
        )

    sub_attr_name, sub_attr = None, None
    if path.sub_attr_name is not None:
        if not isinstance(attr, Complex):
            raise InvalidPathError(
                f"attribute {str(bounded)!r} has no sub-attributes", path=path.serialize()
            )
        sub_attr = attr.attrs.get(path.sub_attr_name)
        if sub_attr is None:
            raise InvalidPathError(
                f"unknown sub-attribute {str(path.sub_attr_name)!r} of {str(bounded)!r}",
                path=path.serialize(),
            )
        sub_attr_name = sub_attr.name

    if path.filter is not None:
        if not isinstance(attr, Complex) or not attr.multi_valued:
            raise InvalidPathError(
                f"value selection filter can not be used for {str(bounded)!r}, "
                "it is not multi-valued complex attribute",
                path=path.serialize(),
            )
        for filter_attr_rep in path.filter.attr_reps:
            if attr.attrs.get(filter_attr_rep) is None:
                raise InvalidPathError(
                    f"unknown sub-attribute {str(filter_attr_rep)!r} "
                    f"of {str(bounded)!r} in value selection filter",
                    path=path.serialize(),
                )

    resolved = ResolvedPath(
        attr_rep=bounded,
        attr=attr,
        sub_attr_name=sub_attr_name,
        sub_attr=sub_attr,
        filter=path.filter,
    )
    logger.debug("Path %r resolved to %r", path.serialize(), str(resolved))
    return resolved
