from collections.abc import Mapping
from typing import Any, Callable, Iterable, Optional, Union, cast

import marshmallow

from scimkit.config import ServiceProviderConfig
from scimkit.data import attrs
from scimkit.data.attrs import Attribute
from scimkit.data.patch import PatchOperations
from scimkit.data.schemas import BaseSchema, ResourceSchema
from scimkit.data.scim_data import Missing, ScimData
from scimkit.error import ValidationError, ValidationIssues
from scimkit.schemas import BulkRequestSchema, PatchOpSchema

_marshmallow_field_by_attr_type: dict[type[attrs.Attribute], type[marshmallow.fields.Field]] = {
    attrs.Unknown: marshmallow.fields.Raw,
    attrs.Boolean: marshmallow.fields.Boolean,
    attrs.Integer: marshmallow.fields.Integer,
    attrs.Decimal: marshmallow.fields.Float,
    attrs.DateTime: marshmallow.fields.DateTime,
    attrs.Binary: marshmallow.fields.String,
    attrs.ExternalReference: marshmallow.fields.String,
    attrs.UriReference: marshmallow.fields.String,
    attrs.ScimReference: marshmallow.fields.String,
    attrs.String: marshmallow.fields.String,
}
_initialized = False
_auto_initialized = False


def initialize(
    fields_by_attrs: Optional[dict[type[attrs.Attribute], type[marshmallow.fields.Field]]] = None,
):
    """
    Initializes the `marshmallow` extension. Used to specify mapping of scimkit attributes to
    marshmallow fields, used when loading and dumping request bodies.

    Default mapping is as follows:

        scimkit.data.Unknown           ---> marshmallow.fields.Raw
        scimkit.data.Boolean           ---> marshmallow.fields.Boolean
        scimkit.data.Integer           ---> marshmallow.fields.Integer
        scimkit.data.Decimal           ---> marshmallow.fields.Float
        scimkit.data.DateTime          ---> marshmallow.fields.DateTime
        scimkit.data.Binary            ---> marshmallow.fields.String
        scimkit.data.ExternalReference ---> marshmallow.fields.String
        scimkit.data.UriReference      ---> marshmallow.fields.String
        scimkit.data.ScimReference     ---> marshmallow.fields.String
        scimkit.data.String            ---> marshmallow.fields.String

    `scimkit.data.Complex` is always converted to `marshmallow.fields.Nested`.

    Raises:
        RuntimeError: When attempt to initialize the extension second time.
    """
    global _marshmallow_field_by_attr_type, _initialized
    if _auto_initialized:
        raise RuntimeError(
            "marshmallow extension has been automatically initialized with default field mapping; "
            "call scimkit.ext.marshmallow.initialize() before first call to extension"
        )
    if _initialized:
        raise RuntimeError("marshmallow extension has been already initialized")

    if fields_by_attrs is not None:
        _marshmallow_field_by_attr_type.update(fields_by_attrs)
    _initialized = True


def _get_fields(attrs_: Iterable[tuple[Any, Attribute]]) -> dict[str, marshmallow.fields.Field]:
    return {str(attr.name): _get_field(attr) for _, attr in attrs_}


def _get_field(attr: Attribute) -> marshmallow.fields.Field:
    field: marshmallow.fields.Field
    if isinstance(attr, attrs.Complex):
        field = marshmallow.fields.Nested(_get_fields(attr.attrs))
    else:
        field = _marshmallow_field_by_attr_type[type(attr)]()
    if attr.multi_valued:
        field = marshmallow.fields.List(field)
    return field


def _plain(value: Any) -> Any:
    if isinstance(value, ScimData):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(item) for item in value]
    return value


def _normalize(attrs_: Iterable[tuple[Any, Attribute]], data: ScimData) -> dict[str, Any]:
    """
    Rewrites the keys of `data` to the attribute names as they are defined in the schema, so
    marshmallow fields, which are case-sensitive, can find them. Keys that are not defined
    in the schema are dropped.
    """
    output: dict[str, Any] = {}
    for attr_rep, attr in attrs_:
        value = data.get(attr_rep)
        if value is Missing:
            continue
        if isinstance(attr, attrs.Complex):
            if isinstance(value, list):
                value = [
                    _normalize(attr.attrs, item) if isinstance(item, ScimData) else item
                    for item in value
                ]
            elif isinstance(value, ScimData):
                value = _normalize(attr.attrs, value)
        output[str(attr.name)] = _plain(value)
    return output


def _transform_errors_dict(input_dict: dict[str, Any]) -> dict[str, Any]:
    output_dict: dict = {}
    for key, value in input_dict.items():
        if isinstance(value, dict):
            transformed_value = _transform_errors_dict(value)
            if "_errors" in transformed_value and len(transformed_value) == 1:
                output_dict[key] = [error["error"] for error in transformed_value["_errors"]]
            else:
                output_dict[key] = transformed_value
        else:
            output_dict[key] = value
    return output_dict


def _raise_on_errors(issues: ValidationIssues) -> None:
    if issues.has_errors():
        raise marshmallow.ValidationError(
            message=_transform_errors_dict(issues.to_dict(msg=True)),
        )


def _validate_bulk_request(scim_schema: BulkRequestSchema, data: ScimData) -> ValidationIssues:
    issues = scim_schema.validate(data)
    if issues.has_errors():
        return issues
    for i, operation in enumerate(data.get("Operations")):
        if operation.get("method").upper() != "PATCH":
            continue
        location = ("Operations", i, "data")
        operation_data = operation.get("data")
        if not isinstance(operation_data, ScimData):
            issues.add_error(
                issue=ValidationError.bad_value_syntax(),
                proceed=False,
                location=location,
            )
            continue
        resource_schema = cast(ResourceSchema, scim_schema.get_resource_schema(operation))
        issues.merge(PatchOpSchema(resource_schema).validate(operation_data), location=location)
    return issues


def _get_patch_op_processors(scim_schema: PatchOpSchema) -> dict[str, Callable]:
    processors_ = {}

    def _pre_load(_, data: Mapping[str, Any], **__) -> dict[str, Any]:
        data = ScimData(data)
        _raise_on_errors(scim_schema.validate(data))
        return _normalize(scim_schema.attrs, data)

    def _post_load(_, data: Mapping[str, Any], **__) -> PatchOperations:
        return scim_schema.deserialize(data)

    def _pre_dump(_, data: Union[PatchOperations, Mapping[str, Any]], **__) -> dict[str, Any]:
        if isinstance(data, PatchOperations):
            return {
                "schemas": [str(scim_schema.schema)],
                "Operations": [operation.to_dict() for operation in data.serialize()],
            }
        return _normalize(scim_schema.attrs, ScimData(data))

    processors_["_pre_load"] = marshmallow.pre_load(_pre_load)
    processors_["_post_load"] = marshmallow.post_load(_post_load)
    processors_["_pre_dump"] = marshmallow.pre_dump(_pre_dump)
    return processors_


def _get_bulk_request_processors(scim_schema: BulkRequestSchema) -> dict[str, Callable]:
    processors_ = {}

    def _pre_load(_, data: Mapping[str, Any], **__) -> dict[str, Any]:
        data = ScimData(data)
        _raise_on_errors(_validate_bulk_request(scim_schema, data))
        return _normalize(scim_schema.attrs, data)

    def _post_load(_, data: Mapping[str, Any], **__) -> ScimData:
        return ScimData(data)

    def _pre_dump(_, data: Mapping[str, Any], **__) -> dict[str, Any]:
        return _normalize(scim_schema.attrs, ScimData(data))

    processors_["_pre_load"] = marshmallow.pre_load(_pre_load)
    processors_["_post_load"] = marshmallow.post_load(_post_load)
    processors_["_pre_dump"] = marshmallow.pre_dump(_pre_dump)
    return processors_


def _create_schema(
    scim_schema: BaseSchema, processors: dict[str, Callable]
) -> type[marshmallow.Schema]:
    schema_cls = marshmallow.Schema.from_dict(fields=_get_fields(scim_schema.attrs))
    class_ = type(type(scim_schema).__name__, (schema_cls,), processors)
    return cast(type[marshmallow.Schema], class_)


def create_patch_op_schema(resource_schema: ResourceSchema) -> type[marshmallow.Schema]:
    """
    Creates `marshmallow` schema for PatchOp request body, targeting resources described by
    `resource_schema`.

    The fields of the resulting schema have no SCIM-specific properties. Instead, the scimkit
    `PatchOpSchema` is hidden inside, so the body is validated exactly the same way. Loading
    returns `PatchOperations`, ready to be applied with `patch_resource`.

    Examples:
        >>> from scimkit.schemas import UserSchema
        >>>
        >>> schema = create_patch_op_schema(UserSchema())()
        >>> operations = schema.load(
        >>>     {
        >>>         "schemas": ["urn:ietf:params:scim:api:messages:2.0:PatchOp"],
        >>>         "Operations": [{"op": "replace", "path": "nickName", "value": "Babs"}],
        >>>     }
        >>> )
    """
    _ensure_initialized()
    scim_schema = PatchOpSchema(resource_schema)
    return _create_schema(scim_schema, _get_patch_op_processors(scim_schema))


def create_bulk_request_schema(
    resource_schemas: Iterable[ResourceSchema],
    config: Optional[ServiceProviderConfig] = None,
) -> type[marshmallow.Schema]:
    """
    Creates `marshmallow` schema for BulkRequest body. Besides the BulkRequest itself, `data`
    of every `PATCH` operation is validated as PatchOp request body. Loading returns
    `ScimData`, which can be passed directly to `BulkProcessor.process`.

    Args:
        resource_schemas: Schemas of resources supported by the bulk request.
        config: Service provider configuration. If not provided, the globally set one is used.
    """
    _ensure_initialized()
    scim_schema = BulkRequestSchema(resource_schemas, config=config)
    return _create_schema(scim_schema, _get_bulk_request_processors(scim_schema))


def _ensure_initialized():
    global _auto_initialized
    if not _initialized:
        initialize()
        _auto_initialized = True
