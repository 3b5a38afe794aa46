import abc
import base64
import binascii
from collections.abc import Mapping
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Collection, Iterable, Iterator, Optional, Union, final
from urllib.parse import urlparse

import precis_i18n.profile
from precis_i18n import get_profile

from scimkit.data.identifiers import AttrName, AttrRep, AttrRepFactory, BoundedAttrRep, SchemaUri
from scimkit.data.scim_data import Missing, ScimData
from scimkit.error import ValidationError, ValidationIssues, ValidationWarning
from scimkit.registry import resources


class AttributeMutability(str, Enum):
    READ_WRITE = "readWrite"
    READ_ONLY = "readOnly"
    WRITE_ONLY = "writeOnly"
    IMMUTABLE = "immutable"


class AttributeReturn(str, Enum):
    DEFAULT = "default"
    ALWAYS = "always"
    NEVER = "never"
    REQUEST = "request"


_AttributeValidator = Callable[[Any], ValidationIssues]


class Attribute(abc.ABC):
    """
    Base class for all attributes. Attributes describe the data; they are consumed by the
    path resolver, the patch engine, and the bulkId scanner, and are never mutated by them.

    Args:
        name: Name of the attribute. Must be valid attribute name, according to RFC-7643.
        description: Description of the attribute.
        required: Specifies if attribute is required, as per RFC-7643.
        multi_valued: Specifies if attribute is multivalued, as per RFC-7643.
        canonical_values: Specifies canonical values for the attribute, as per RFC-7643.
        restrict_canonical_values: flag that indicates whether validation error should be
            returned if provided value is not one of canonical values. If set to `False`,
            the validation warning is returned instead.
        mutability: Specifies attribute's mutability, as per RFC-7643.
        returned: Specifies attribute's `returned` characteristic, as per RFC-7643.
        validators: Additional validators, which are run, if the built-in validation succeeds.
    """

    def __init__(
        self,
        name: str,
        *,
        description: str = "",
        required: bool = False,
        multi_valued: bool = False,
        canonical_values: Optional[Collection] = None,
        restrict_canonical_values: bool = False,
        mutability: AttributeMutability = AttributeMutability.READ_WRITE,
        returned: AttributeReturn = AttributeReturn.DEFAULT,
        validators: Optional[list[_AttributeValidator]] = None,
    ):
        self._name = AttrName(name)
        self._description = description
        self._required = required
        self._canonical_values = list(canonical_values or [])
        self._validate_canonical_values = restrict_canonical_values
        self._multi_valued = multi_valued
        self._mutability = AttributeMutability(mutability)
        self._returned = AttributeReturn(returned)
        self._validators = validators or []

    @classmethod
    @abc.abstractmethod
    def scim_type(cls) -> str:
        """Returns type of the attribute, as defined in RFC-7643."""

    @classmethod
    @abc.abstractmethod
    def base_types(cls) -> tuple[type, ...]:
        """Returns Python types, supported by the specific `Attribute` subclass."""

    @property
    def name(self) -> AttrName:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def required(self) -> bool:
        return self._required

    @property
    def multi_valued(self) -> bool:
        return self._multi_valued

    @property
    def canonical_values(self) -> list:
        return self._canonical_values

    @property
    def mutability(self) -> AttributeMutability:
        return self._mutability

    @property
    def returned(self) -> AttributeReturn:
        return self._returned

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self._name})"

    def _is_canonical(self, value: Any) -> bool:
        if not self._canonical_values:
            return True
        return value in self._canonical_values

    def _validate_type(self, value: Any) -> ValidationIssues:
        issues = ValidationIssues()
        if self.multi_valued:
            if not isinstance(value, list):
                issues.add_error(
                    issue=ValidationError.bad_type("list"),
                    proceed=False,
                )
                return issues
            for i, item in enumerate(value):
                issues.merge(self._validate_value_type(item), location=[i])
            return issues
        issues.merge(self._validate_value_type(value))
        return issues

    def _validate_value_type(self, value: Any) -> ValidationIssues:
        issues = ValidationIssues()
        # bool is a subclass of int, but not a valid integer or decimal
        if isinstance(value, bool) and bool not in self.base_types():
            issues.add_error(issue=ValidationError.bad_type(self.scim_type()), proceed=False)
        elif not isinstance(value, self.base_types()):
            issues.add_error(issue=ValidationError.bad_type(self.scim_type()), proceed=False)
        return issues

    def validate(self, value: Any) -> ValidationIssues:
        """
        Validates the provided value according to attribute's specification.
        It validates the type and canonicality (if specified). If no validation issues,
        custom validators (passed as `validators` constructor parameter) are run.
        """
        issues = ValidationIssues()
        if value in [None, Missing]:
            return issues

        issues.merge(self._validate_type(value))
        if not issues.can_proceed():
            return issues

        if self._multi_valued:
            for i, item in enumerate(value):
                issues.merge(self._validate(item), location=[i])
        else:
            issues.merge(self._validate(value))
        for validator in self._validators:
            if not issues.can_proceed():
                break
            issues.merge(validator(value))
        return issues

    def _validate(self, value: Any) -> ValidationIssues:
        issues = ValidationIssues()
        if not self._is_canonical(value):
            if self._validate_canonical_values:
                issues.add_error(
                    issue=ValidationError.must_be_one_of(self._canonical_values),
                    proceed=False,
                )
            else:
                issues.add_warning(
                    issue=ValidationWarning.should_be_one_of(self._canonical_values),
                )
        return issues


class AttributeWithCaseExact(Attribute, abc.ABC):
    """
    Includes `caseExact` characteristic to the attribute, as per RFC-7643.
    """

    def __init__(self, name: Union[str, AttrName], *, case_exact: bool = False, **kwargs: Any):
        super().__init__(name=name, **kwargs)
        self._case_exact = case_exact

    @property
    def case_exact(self) -> bool:
        return self._case_exact

    def _is_canonical(self, value: Any) -> bool:
        if self._case_exact or not isinstance(value, str):
            return super()._is_canonical(value)
        return not self._canonical_values or value.lower() in [
            item.lower() for item in self._canonical_values
        ]


@final
class Unknown(Attribute):
    """
    Attribute of unknown type that is used for attributes with varying content.
    For example, `urn:ietf:params:scim:api:messages:2.0:PatchOp:Operations.value` is such attribute.
    """

    @classmethod
    def scim_type(cls) -> str:
        raise NotImplementedError("scim type for Unknown attribute is not determined")

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        raise NotImplementedError("base types for Unknown attribute are not determined")

    def _validate_value_type(self, value: Any) -> ValidationIssues:
        return ValidationIssues()

    def _validate_type(self, value: Any) -> ValidationIssues:
        return ValidationIssues()


@final
class Boolean(Attribute):
    @classmethod
    def scim_type(cls) -> str:
        return "boolean"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (bool,)


@final
class Decimal(Attribute):
    @classmethod
    def scim_type(cls) -> str:
        return "decimal"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return float, int


@final
class Integer(Attribute):
    @classmethod
    def scim_type(cls) -> str:
        return "integer"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (int,)


@final
class String(AttributeWithCaseExact):
    """
    Represents **string** attribute, as specified in RFC-7643.

    Args:
        name: The name of the attribute
        precis: PRECIS profile that should be applied for the string attribute, when
            comparing values. By default, **OpaqueString** profile is used
        kwargs: The same keyword arguments base classes receive
    """

    def __init__(
        self,
        name: Union[str, AttrName],
        *,
        precis: precis_i18n.profile.Profile = get_profile("OpaqueString"),
        **kwargs: Any,
    ):
        super().__init__(name=name, **kwargs)
        self._precis = precis

    @classmethod
    def scim_type(cls) -> str:
        return "string"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (str,)

    @property
    def precis(self) -> precis_i18n.profile.Profile:
        return self._precis


@final
class Binary(AttributeWithCaseExact):
    """
    Represents **binary** attribute, as specified in RFC-7643. Binary attributes are
    case-sensitive, since they are represented by base64-encoded strings.
    """

    def __init__(self, name: Union[str, AttrName], **kwargs: Any):
        kwargs["case_exact"] = True
        super().__init__(name=name, **kwargs)

    @classmethod
    def scim_type(cls) -> str:
        return "binary"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (str,)

    def _validate_value_type(self, value: Any) -> ValidationIssues:
        issues = super()._validate_value_type(value)
        if not issues.can_proceed():
            return issues
        if (padding := len(value) % 4) != 0:
            value += "=" * (4 - padding)
        try:
            base64.b64decode(value, validate=True)
        except binascii.Error:
            issues.add_error(
                issue=ValidationError.bad_encoding("base64"),
                proceed=False,
            )
        return issues


@final
class DateTime(Attribute):
    """
    Represents **dateTime** attribute, as specified in RFC-7643. Values are kept as
    `xsd:dateTime` strings.
    """

    @classmethod
    def scim_type(cls) -> str:
        return "dateTime"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (str,)

    def _validate_value_type(self, value: Any) -> ValidationIssues:
        issues = super()._validate_value_type(value)
        if not issues.can_proceed():
            return issues
        if self.parse(value) is None:
            issues.add_error(
                issue=ValidationError.bad_value_syntax(),
                proceed=False,
            )
        return issues

    @staticmethod
    def parse(value: str) -> Optional[datetime]:
        if value.endswith(("Z", "z")):
            value = value[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None


class Reference(AttributeWithCaseExact, abc.ABC):
    """
    Base class for all reference attributes.
    """

    def __init__(
        self, name: Union[str, AttrName], *, reference_types: Iterable[str], **kwargs: Any
    ):
        kwargs["case_exact"] = True
        super().__init__(name=name, **kwargs)
        self._reference_types = list(reference_types)

    @classmethod
    def scim_type(cls) -> str:
        return "reference"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (str,)

    @property
    def reference_types(self) -> list[str]:
        return self._reference_types


@final
class ExternalReference(Reference):
    def __init__(self, name: Union[str, AttrName], **kwargs):
        kwargs["reference_types"] = ["external"]
        super().__init__(name=name, **kwargs)

    def _validate_value_type(self, value: Any) -> ValidationIssues:
        issues = super()._validate_value_type(value)
        if issues.can_proceed():
            result = urlparse(value)
            if not all([result.scheme, result.netloc]):
                issues.add_error(
                    issue=ValidationError.bad_value_syntax(),
                    proceed=False,
                )
        return issues


@final
class UriReference(Reference):
    def __init__(self, name: Union[str, AttrName], **kwargs):
        kwargs["reference_types"] = ["uri"]
        super().__init__(name=name, **kwargs)


@final
class ScimReference(Reference):
    """
    Represents SCIM **reference**, as specified in RFC-7643. The value must point to
    the endpoint of one of the resources listed in `reference_types`.
    """

    def _validate_value_type(self, value: Any) -> ValidationIssues:
        issues = super()._validate_value_type(value)
        if not issues.can_proceed():
            return issues

        for resource_schema in resources.values():
            if resource_schema.name in self._reference_types and resource_schema.endpoint in value:
                return issues

        issues.add_error(
            issue=ValidationError.bad_scim_reference(self._reference_types),
            proceed=False,
        )
        return issues


@final
class Complex(Attribute):
    """
    Represents **complex** attribute, as specified in RFC-7643.

    Args:
        name: Name of the attribute.
        sub_attributes: Complex sub-attributes. All attributes but `Complex`
            can be sub-attributes. If not specified, and the attribute is multivalued,
            the default sub-attributes are used, as specified in
            [RFC-7643, section 2.4](https://www.rfc-editor.org/rfc/rfc7643#section-2.4).
        kwargs: The same keyword arguments the base class receives
    """

    def __init__(
        self,
        name: Union[str, AttrName],
        *,
        sub_attributes: Optional[Collection[Attribute]] = None,
        **kwargs: Any,
    ):
        for attr in sub_attributes or []:
            if isinstance(attr, Complex):
                raise TypeError("complex attributes can not contain complex sub-attributes")

        validators = list(kwargs.pop("validators", None) or [])
        super().__init__(name=name, **kwargs)

        default_sub_attrs = (
            [
                String("value"),
                String("display", mutability=AttributeMutability.IMMUTABLE),
                String("type"),
                Boolean("primary"),
                UriReference("$ref"),
            ]
            if self._multi_valued
            else []
        )
        self._sub_attributes = Attrs(sub_attributes or default_sub_attrs)
        if (
            self._multi_valued
            and self.attrs.get("primary") is not None
            and validate_single_primary_value not in validators
        ):
            validators.append(validate_single_primary_value)
        self._validators = validators

    @classmethod
    def scim_type(cls) -> str:
        return "complex"

    @classmethod
    def base_types(cls) -> tuple[type, ...]:
        return (Mapping,)

    @property
    def attrs(self) -> "Attrs":
        return self._sub_attributes

    def _validate(self, value: Mapping[str, Any]) -> ValidationIssues:
        issues = ValidationIssues()
        value = ScimData(value)
        for name, sub_attr in self._sub_attributes:
            sub_attr_value = value.get(name)
            if sub_attr_value is Missing:
                continue
            issues.merge(sub_attr.validate(sub_attr_value), location=[name])
        return issues


def validate_single_primary_value(value: Collection[Mapping]) -> ValidationIssues:
    issues = ValidationIssues()
    primary_entries = 0
    for item in value:
        if ScimData(item).get("primary") is True:
            primary_entries += 1
    if primary_entries > 1:
        issues.add_error(
            issue=ValidationError.multiple_primary_values(),
            proceed=True,
        )
    return issues


class Attrs:
    """
    Represents iterable collection of unbounded attributes.

    Examples:
        >>> attrs = Attrs([String("myString"), Integer("myInteger")])
        >>> for name, attr in attrs:
        >>>     print(name, attr)
    """

    def __init__(self, attrs: Optional[Iterable[Attribute]] = None):
        self._attrs = {attr.name: attr for attr in (attrs or [])}

    def __iter__(self) -> Iterator[tuple[AttrName, Attribute]]:
        return iter(self._attrs.items())

    def get(self, attr_name: Union[str, AttrRep]) -> Optional[Attribute]:
        """
        Returns an attribute by its name, case-insensitively, or `None` if there is no such
        attribute.

        Raises:
            ValueError: If the provided attribute name is not valid.
        """
        if isinstance(attr_name, AttrRep):
            attr_name = attr_name.attr
        return self._attrs.get(AttrName(attr_name))


class BoundedAttrs:
    """
    Represents iterable collection of attributes bounded to a specific schema, and attributes
    of extensions that extend the schema.

    Args:
        schema: A SCIM schema attributes belong to.
        attrs: Attributes bound to the schema.

    Examples:
        >>> bounded_attrs = BoundedAttrs(
        >>>     schema=SchemaUri("my:resource:schema"),
        >>>     attrs=[
        >>>         String("myString"),
        >>>         Complex("myComplex", sub_attributes=[Integer("myInteger")])
        >>>     ],
        >>>)
        >>>
        >>> for attr_rep, attr in bounded_attrs:
        >>>     print(attr_rep, attr)
    """

    def __init__(self, schema: SchemaUri, attrs: Optional[Iterable[Attribute]] = None):
        self._schema = schema
        self._extensions: dict[SchemaUri, BoundedAttrs] = {}
        self._attrs: dict[BoundedAttrRep, Attribute] = {}
        self._ambiguous: set[AttrName] = set()
        for attr in attrs or []:
            self._attrs[BoundedAttrRep(schema=self._schema, attr=attr.name)] = attr

    def __iter__(self) -> Iterator[tuple[BoundedAttrRep, Attribute]]:
        return iter(self._attrs.items())

    def __getattr__(self, name: str) -> BoundedAttrRep:
        """
        Returns bounded attribute representation, given only an attribute name. Sub-attributes
        are accessed with `__` separator, e.g. `name__formatted`. Searches through attributes
        defined in the schema, then in the extensions.

        Raises:
            AttributeError: If bounded attribute is not found.
        """
        if name.startswith("_"):
            raise AttributeError(name)
        attr_rep = AttrRep(*name.split("__", 1))
        for schema, attrs in [(self._schema, self), *self._extensions.items()]:
            top_level = BoundedAttrRep(schema=schema, attr=attr_rep.attr)
            attr = attrs._attrs.get(top_level)
            if attr is None:
                continue
            if not attr_rep.is_sub_attr:
                return BoundedAttrRep(schema=schema, attr=attr.name)
            if isinstance(attr, Complex) and (sub_attr := attr.attrs.get(attr_rep.sub_attr)):
                return BoundedAttrRep(schema=schema, attr=attr.name, sub_attr=sub_attr.name)
        raise AttributeError(
            f"attribute {name.replace('__', '.')!r} "
            f"does not exist within {self._schema!r} and its extensions"
        )

    @property
    def schema(self) -> SchemaUri:
        return self._schema

    @property
    def extensions(self) -> dict[SchemaUri, "BoundedAttrs"]:
        return self._extensions

    @property
    def ambiguous(self) -> set[AttrName]:
        """
        Unqualified attribute names defined by more than one extension, and not defined
        in the base schema. Such names must be qualified with the schema URI.
        """
        return self._ambiguous

    def core_attrs(self) -> Iterator[tuple[BoundedAttrRep, Attribute]]:
        """
        Iterates through the attributes of the base schema, without extension ones.
        """
        for attr_rep, attr in self._attrs.items():
            if attr_rep.schema == self._schema:
                yield attr_rep, attr

    def extend(self, schema: SchemaUri, attrs: "BoundedAttrs") -> None:
        """
        Extends bounded attributes with provided attributes, associated with a provided schema.
        Unqualified names that become ambiguous are recorded in `ambiguous`.
        """
        for attr_rep, _ in attrs:
            if self._get_top_level(self._schema, attr_rep.attr) is not None:
                continue
            for other in self._extensions.values():
                if other._get_top_level(other.schema, attr_rep.attr) is not None:
                    self._ambiguous.add(attr_rep.attr)
        self._extensions[schema] = attrs
        for attr_rep, attr in attrs:
            self._attrs[attr_rep] = attr

    def _get_top_level(self, schema: SchemaUri, attr_name: str) -> Optional[Attribute]:
        return self._attrs.get(BoundedAttrRep(schema=schema, attr=attr_name))

    def get(self, attr_rep: Union[str, AttrRep]) -> Optional[Attribute]:
        """
        Returns an attribute, given its name or (bounded) representation.
        If unbounded representation is provided, the base schema is checked first, then
        extensions, and first matching result is returned.

        Raises:
            ValueError: If provided attribute name is not valid.
        """
        bounded = self.bind(attr_rep)
        if bounded is None:
            return None
        attr = self._get_top_level(bounded.schema, bounded.attr)
        if attr is None or not bounded.is_sub_attr:
            return attr
        if not isinstance(attr, Complex):
            return None
        return attr.attrs.get(bounded.sub_attr)

    def bind(self, attr_rep: Union[str, AttrRep]) -> Optional[BoundedAttrRep]:
        """
        Returns bounded representation of the existing attribute, with names in the same
        casing as in the attribute definitions, or `None` if the attribute does not exist.
        """
        if isinstance(attr_rep, str):
            attr_rep = AttrRepFactory.deserialize(attr_rep)

        if isinstance(attr_rep, BoundedAttrRep):
            candidates = [attr_rep.schema]
        else:
            candidates = [self._schema, *self._extensions]

        for schema in candidates:
            attr = self._get_top_level(schema, attr_rep.attr)
            if attr is None:
                continue
            if not attr_rep.is_sub_attr:
                return BoundedAttrRep(schema=schema, attr=attr.name)
            if isinstance(attr, Complex) and (sub_attr := attr.attrs.get(attr_rep.sub_attr)):
                return BoundedAttrRep(schema=schema, attr=attr.name, sub_attr=sub_attr.name)
            return None
        return None
