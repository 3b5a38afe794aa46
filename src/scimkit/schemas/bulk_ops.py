import re
from collections.abc import Mapping
from typing import Any, Iterable, Optional

from scimkit import registry
from scimkit.config import ServiceProviderConfig
from scimkit.data.attrs import Complex, Integer, String, Unknown
from scimkit.data.schemas import BaseSchema, ResourceSchema
from scimkit.data.scim_data import Missing, ScimData
from scimkit.error import ValidationError, ValidationIssues

_RESOURCE_TYPE_REGEX = re.compile(r"/[^/\s]+")
_RESOURCE_OBJECT_REGEX = re.compile(r"/[^/\s]+/[^/\s]+")

_METHODS = ["POST", "PUT", "PATCH", "DELETE"]


def validate_request_operations(value: list[ScimData]) -> ValidationIssues:
    issues = ValidationIssues()
    for i, item in enumerate(value):
        if not isinstance(item, ScimData):
            continue
        method = item.get("method")
        if method in [None, Missing]:
            issues.add_error(
                issue=ValidationError.missing(),
                proceed=False,
                location=(i, "method"),
            )
            continue
        if not isinstance(method, str):
            continue
        method = method.upper()
        bulk_id = item.get("bulkId")
        if method == "POST" and bulk_id in [None, Missing]:
            issues.add_error(
                issue=ValidationError.missing(),
                proceed=False,
                location=(i, "bulkId"),
            )
        path = item.get("path")
        if path in [None, Missing]:
            issues.add_error(
                issue=ValidationError.missing(),
                proceed=False,
                location=(i, "path"),
            )
        elif not isinstance(path, str):
            continue
        elif (method == "POST" and not _RESOURCE_TYPE_REGEX.fullmatch(path)) or (
            method != "POST" and not _RESOURCE_OBJECT_REGEX.fullmatch(path)
        ):
            issues.add_error(
                issue=ValidationError.bad_value_syntax(),
                proceed=False,
                location=(i, "path"),
            )
        data = item.get("data")
        if method in ["POST", "PUT", "PATCH"] and data in [None, Missing]:
            issues.add_error(
                issue=ValidationError.missing(),
                proceed=False,
                location=(i, "data"),
            )
    return issues


class BulkRequestSchema(BaseSchema):
    """
    BulkRequest schema, identified by `urn:ietf:params:scim:api:messages:2.0:BulkRequest` URI.

    Provides data validation and checks if:

    - `Operations` are provided, and there are no more of them than the service provider
      configuration allows,
    - `method` is provided, and is one of `POST`, `PUT`, `PATCH`, and `DELETE`,
    - `bulkId` is provided for `POST` method,
    - `path` is provided, and is valid, depending on the method type,
    - `path` specifies one of supported resources,
    - `data` is provided for `POST`, `PUT`, and `PATCH` methods,
    - `failOnErrors`, if provided, is positive.
    """

    schema = "urn:ietf:params:scim:api:messages:2.0:BulkRequest"
    base_attrs = [
        Integer("failOnErrors"),
        Complex(
            name="Operations",
            required=True,
            multi_valued=True,
            validators=[validate_request_operations],
            sub_attributes=[
                String(
                    name="method",
                    required=True,
                    canonical_values=_METHODS,
                    restrict_canonical_values=True,
                ),
                String("bulkId", case_exact=True),
                String("version", case_exact=True),
                String(name="path", required=True, case_exact=True),
                Unknown("data"),
            ],
        ),
    ]

    def __init__(
        self,
        resource_schemas: Iterable[ResourceSchema],
        config: Optional[ServiceProviderConfig] = None,
    ):
        """
        Args:
            resource_schemas: Schemas of resources supported by the bulk request.
            config: Service provider configuration. If not provided, the globally set one
                is used.

        Examples:
            >>> from scimkit.schemas import UserSchema, GroupSchema
            >>>
            >>> BulkRequestSchema([UserSchema(), GroupSchema()])
        """
        super().__init__()
        self._resource_schemas = {
            schema.endpoint.lower(): schema for schema in resource_schemas
        }
        self._config = config

    @property
    def config(self) -> ServiceProviderConfig:
        return self._config or registry.service_provider_config

    def get_resource_schema(self, operation: Mapping[str, Any]) -> Optional[ResourceSchema]:
        """
        Returns one of resource schemas, depending on the operation's path, or `None` if
        the path indicates unsupported resource.
        """
        path = ScimData(operation).get("path")
        if not isinstance(path, str) or not path.startswith("/"):
            return None
        return self._resource_schemas.get(f"/{path.split('/', 2)[1]}".lower())

    def _validate(self, data: ScimData, **kwargs: Any) -> ValidationIssues:
        issues = ValidationIssues()
        fail_on_errors = data.get("failOnErrors")
        if isinstance(fail_on_errors, int) and fail_on_errors < 1:
            issues.add_error(
                issue=ValidationError.bad_value_content(),
                proceed=False,
                location=("failOnErrors",),
            )

        operations = data.get("Operations")
        if operations in [None, Missing]:
            issues.add_error(
                issue=ValidationError.missing(),
                proceed=False,
                location=("Operations",),
            )
            return issues
        if not isinstance(operations, list):
            return issues

        max_operations = self.config.bulk.max_operations
        if isinstance(max_operations, int) and len(operations) > max_operations:
            issues.add_error(
                issue=ValidationError.too_many_bulk_operations(max_operations),
                proceed=False,
                location=("Operations",),
            )

        for i, operation in enumerate(operations):
            if not isinstance(operation, ScimData) or not isinstance(operation.get("path"), str):
                continue
            if self.get_resource_schema(operation) is None:
                issues.add_error(
                    issue=ValidationError.unknown_operation_resource(),
                    proceed=False,
                    location=("Operations", i, "path"),
                )
        return issues
