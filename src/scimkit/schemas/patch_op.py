from collections.abc import Mapping
from typing import Any

from scimkit.data.attrs import Attribute, AttributeMutability, Complex, String, Unknown
from scimkit.data.patch import PatchOperation, PatchOperations, PatchOperationType
from scimkit.data.path import resolve_path
from scimkit.data.schemas import BaseSchema, ResourceSchema
from scimkit.data.scim_data import Missing, ScimData
from scimkit.error import InvalidPathError, ValidationError, ValidationIssues


class PatchOpSchema(BaseSchema):
    """
    PatchOp schema, identified by `urn:ietf:params:scim:api:messages:2.0:PatchOp` URI.

    Provides data validation and checks if:

    - `Operations` are provided,
    - `Operations.op` is one of `add`, `remove`, and `replace`,
    - `Operations.path` is valid path expression, and is provided in `remove` operation,
    - `Operations.value` is provided in `add` and `replace` operations, and is not provided
      in `remove` operation,
    - `Operations.path` targets existing attribute of the resource,
    - `Operations.path` does not target `readOnly` attribute,
    - `Operations.path` does not target required attribute in `remove` operation.

    Values are not checked here, as they are converted to attribute types and validated
    when the operations are applied.
    """

    schema = "urn:ietf:params:scim:api:messages:2.0:PatchOp"
    base_attrs: list[Attribute] = [
        Complex(
            name="Operations",
            required=True,
            multi_valued=True,
            sub_attributes=[
                String("op", required=True),
                String("path"),
                Unknown("value"),
            ],
        )
    ]

    def __init__(self, resource_schema: ResourceSchema):
        """
        Args:
            resource_schema: Resource schema supported by the patch operation.

        Examples:
             >>> from scimkit.schemas import UserSchema
             >>>
             >>> patch_op = PatchOpSchema(UserSchema())
        """
        super().__init__()
        self._resource_schema = resource_schema

    @property
    def resource_schema(self) -> ResourceSchema:
        return self._resource_schema

    def _validate(self, data: ScimData, **kwargs: Any) -> ValidationIssues:
        issues = ValidationIssues()
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

        for i, operation in enumerate(operations):
            if not isinstance(operation, Mapping):
                continue
            operation_issues = PatchOperation.validate(operation)
            issues.merge(operation_issues, location=("Operations", i))
            if operation_issues.has_errors():
                continue
            issues.merge(
                self._validate_target(PatchOperation.deserialize(operation)),
                location=("Operations", i, "path"),
            )
        return issues

    def _validate_target(self, operation: PatchOperation) -> ValidationIssues:
        issues = ValidationIssues()
        if operation.path is None:
            return issues
        try:
            path = resolve_path(operation.path, self._resource_schema)
        except InvalidPathError:
            issues.add_error(issue=ValidationError.unknown_modification_target(), proceed=False)
            return issues
        if path.is_extension:
            return issues

        attr = path.target
        if attr.mutability == AttributeMutability.READ_ONLY or (
            path.attr.mutability == AttributeMutability.READ_ONLY
        ):
            issues.add_error(issue=ValidationError.attribute_can_not_be_modified(), proceed=True)
        if operation.type == PatchOperationType.REMOVE and attr.required and path.filter is None:
            issues.add_error(issue=ValidationError.attribute_can_not_be_deleted(), proceed=True)
        return issues

    def deserialize(self, data: Mapping[str, Any]) -> PatchOperations:
        """
        Deserializes operations of the PatchOp request. The data should be validated first.

        Raises:
            ValueError: If any operation is malformed.
        """
        return PatchOperations.deserialize(ScimData(data).get("Operations", []))
