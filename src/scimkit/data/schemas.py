import logging
from typing import Any, Iterable, MutableMapping, Optional, Union, cast

from scimkit.data.attrs import (
    Attribute,
    AttributeMutability,
    AttributeReturn,
    BoundedAttrs,
    Complex,
    DateTime,
    String,
    UriReference,
)
from scimkit.data.identifiers import AttrName, SchemaUri
from scimkit.data.scim_data import Missing, ScimData
from scimkit.error import ValidationError, ValidationIssues
from scimkit.registry import register_resource_schema, register_schema

logger = logging.getLogger(__name__)


class SchemaMeta(type):
    def __init__(cls, name, bases, dct):
        super().__init__(name, bases, dct)
        if hasattr(cls, "schema"):
            cls.schema = SchemaUri(cls.schema)
            register_schema(SchemaUri(cls.schema))


class BaseSchema(metaclass=SchemaMeta):
    """
    Base class for all schemas. Includes `schemas` attribute to attributes defined in subclasses.
    """

    schema: Union[str, SchemaUri]
    base_attrs: list[Attribute] = [
        UriReference(
            name="schemas",
            required=True,
            multi_valued=True,
            mutability=AttributeMutability.READ_ONLY,
            returned=AttributeReturn.ALWAYS,
        )
    ]

    def __init__(self):
        self._attrs = BoundedAttrs(
            schema=cast(SchemaUri, self.schema),
            attrs=self._get_attrs(),
        )

    @property
    def attrs(self) -> BoundedAttrs:
        """
        Attributes that belong to the schema.
        """
        return self._attrs

    @property
    def schemas(self) -> list[SchemaUri]:
        """
        All schema URIs by which the schema is identified.
        """
        return [cast(SchemaUri, self.schema)]

    def _get_attrs(self) -> list[Attribute]:
        attrs = []
        for cls in reversed(self.__class__.mro()):
            if issubclass(cls, BaseSchema) and "base_attrs" in cls.__dict__:
                attrs.extend(getattr(cls, "base_attrs"))
        return attrs

    def validate(self, data: MutableMapping[str, Any], **kwargs: Any) -> ValidationIssues:
        """
        Validates the provided data according to the schema attributes configuration, and
        checks whether the `schemas` attribute contains the base schema URI. Extended
        built-in validation logic is supplied with `_validate` method, implemented
        in subclasses.
        """
        issues = ValidationIssues()
        data = ScimData(data)
        for attr_rep, attr in self.attrs:
            issues.merge(attr.validate(data.get(attr_rep)), location=attr_rep.location)
        if issues.can_proceed(("schemas",)):
            issues.merge(self._validate_schemas_field(data), location=("schemas",))
        issues.merge(self._validate(data, **kwargs))
        return issues

    def _validate_schemas_field(self, data: ScimData) -> ValidationIssues:
        issues = ValidationIssues()
        provided = data.get("schemas")
        if provided is Missing:
            issues.add_error(issue=ValidationError.missing(), proceed=False)
            return issues
        if self.schema not in [SchemaUri(item) for item in provided if isinstance(item, str)]:
            issues.add_error(
                issue=ValidationError.must_be_one_of([str(self.schema)]),
                proceed=True,
            )
        return issues

    def _validate(self, data: ScimData, **kwargs: Any) -> ValidationIssues:
        return ValidationIssues()


class BaseResourceSchema(BaseSchema):
    """
    Base class for system and user resources.
    """

    name: str
    endpoint: Optional[str] = None
    base_attrs: list[Attribute] = [
        Complex(
            name="meta",
            mutability=AttributeMutability.READ_ONLY,
            sub_attributes=[
                String(
                    name="resourceType",
                    case_exact=True,
                    mutability=AttributeMutability.READ_ONLY,
                ),
                DateTime(name="created", mutability=AttributeMutability.READ_ONLY),
                DateTime(name="lastModified", mutability=AttributeMutability.READ_ONLY),
                UriReference(name="location", mutability=AttributeMutability.READ_ONLY),
                String(
                    name="version",
                    case_exact=True,
                    mutability=AttributeMutability.READ_ONLY,
                ),
            ],
        )
    ]

    def __init__(self):
        super().__init__()
        self.endpoint = self.endpoint or f"/{self.name}"


class ResourceSchema(BaseResourceSchema):
    """
    Base class for all user-defined resources. Attributes: `schemas`, `meta`, `id`, and `externalId`
    are already defined in the schema.

    To define the schema, besides `base_attrs`, one must specify `schema` and `name` class
    attributes. Optional class attributes are `plural_name`, `endpoint`, and `description`.
    If `plural_name` is not specified, it is defaulted to `name`, and `endpoint` is defaulted
    to `/<plural_name>`.

    Examples:
        >>> class MyResourceSchema(ResourceSchema):
        >>>     schema = "urn:my:resource"
        >>>     name = "Resource"
        >>>     plural_name = "Resources"
        >>>     endpoint = "/Resources"
        >>>     description = "The best resource."
        >>>     base_attrs = [...]
    """

    plural_name: str
    description: str = ""
    base_attrs: list[Attribute] = [
        String(
            name="id",
            required=True,
            case_exact=True,
            mutability=AttributeMutability.READ_ONLY,
            returned=AttributeReturn.ALWAYS,
        ),
        String(
            name="externalId",
            case_exact=True,
        ),
    ]

    def __init__(self):
        self.plural_name = getattr(self, "plural_name", self.name)
        self.endpoint = self.endpoint or f"/{self.plural_name}"
        super().__init__()
        self._extensions: dict[SchemaUri, tuple["SchemaExtension", bool]] = {}
        register_resource_schema(self)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.schema})"

    @property
    def schemas(self) -> list[SchemaUri]:
        """
        Schema URIs by which the schema is identified. Includes schema extension URIs.
        """
        return [cast(SchemaUri, self.schema)] + list(self._extensions)

    @property
    def extensions(self) -> dict[SchemaUri, bool]:
        """
        Extensions added to the schema. Map containing schema extension URIs and flags indicating
        whether they are required extensions.
        """
        return {uri: required for uri, (_, required) in self._extensions.items()}

    @property
    def ambiguous_attrs(self) -> set[AttrName]:
        """
        Unqualified names of extension attributes that can not be told apart without
        the schema URI prefix.
        """
        return self._attrs.ambiguous

    def get_extension(self, schema: str) -> Optional["SchemaExtension"]:
        item = self._extensions.get(SchemaUri(schema))
        return item[0] if item else None

    def extend(self, extension: "SchemaExtension", required: bool = False) -> None:
        """
        Extends the base schema with the provided schema `extension`. Extension attributes
        become part of the schema and are available in `ResourceSchema.attrs`.

        Extension attributes whose names are also used by the base schema are reachable with
        unqualified names only if they are not defined in the base schema. Names that collide
        between extensions are recorded as ambiguous and must be qualified with the URI.

        Raises:
            ValueError: If the extension is already part of the schema.
        """
        if extension.schema in self.schemas:
            raise ValueError(f"schema {extension.schema!r} already in {self.name!r} resource")
        self._extensions[cast(SchemaUri, extension.schema)] = (extension, required)
        for _, attr in extension.attrs:
            if self._attrs.get(attr.name) is not None:
                logger.debug(
                    "Extension %r defines %r attribute, already present in %r resource",
                    extension.name,
                    str(attr.name),
                    self.name,
                )
        self._attrs.extend(
            schema=cast(SchemaUri, extension.schema),
            attrs=extension.attrs,
        )
        if self._attrs.ambiguous:
            logger.debug(
                "Attributes %s of %r resource are ambiguous without schema URI",
                sorted(self._attrs.ambiguous),
                self.name,
            )

    def _validate(self, data: ScimData, **kwargs: Any) -> ValidationIssues:
        issues = ValidationIssues()
        resource_type = data.get("meta.resourceType")
        if resource_type not in [Missing, None] and resource_type != self.name:
            issues.add_error(
                issue=ValidationError.must_be_one_of([self.name]),
                proceed=True,
                location=("meta", "resourceType"),
            )
        return issues


class SchemaExtension:
    """
    Base class for all user-defined schema extensions.

    To define the schema extension, besides `base_attrs`, one must specify `schema` and `name`
    class attributes. Optionally, `description` can be provided.

    Examples:
        >>> class MyResourceSchemaExtension(SchemaExtension):
        >>>     schema = "urn:my:resource:extension"
        >>>     name = "ResourceExtension"
        >>>     description = "The best resource extension."
        >>>     base_attrs = [...]
    """

    schema: Union[str, SchemaUri]
    name: str
    description: str = ""
    base_attrs: list[Attribute] = []

    def __init__(self, attrs: Optional[Iterable[Attribute]] = None):
        self.schema = SchemaUri(self.schema)
        register_schema(self.schema, True)
        self._attrs = BoundedAttrs(
            schema=self.schema,
            attrs=self.base_attrs if attrs is None else attrs,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.schema})"

    @property
    def attrs(self) -> BoundedAttrs:
        """
        Attributes that belong to the extension.
        """
        return self._attrs
