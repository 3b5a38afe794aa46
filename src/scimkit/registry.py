from typing import TYPE_CHECKING

from scimkit.config import ServiceProviderConfig

if TYPE_CHECKING:
    from scimkit.data.identifiers import SchemaUri
    from scimkit.data.operator import BinaryAttributeOperator, UnaryAttributeOperator
    from scimkit.data.schemas import ResourceSchema


resources: dict[str, "ResourceSchema"] = {}
schemas: dict[str, bool] = {}


def register_resource_schema(resource_schema: "ResourceSchema"):
    existing = resources.get(resource_schema.name)
    if existing is not None and existing.endpoint != resource_schema.endpoint:
        raise RuntimeError(
            f"resource {resource_schema.name!r} already registered "
            f"for different endpoint {existing.endpoint!r}"
        )
    resources[resource_schema.name] = resource_schema


def register_schema(schema: "SchemaUri", extension: bool = False):
    if schema.lower().startswith("urn:ietf:params:scim:api:messages:2.0:") and schema in schemas:
        raise RuntimeError("schemas for SCIM API messages can not be overridden")
    schemas[schema] = extension


unary_operators: dict[str, type["UnaryAttributeOperator"]] = {}
binary_operators: dict[str, type["BinaryAttributeOperator"]] = {}


def _register_operator(registered: dict[str, type], kind: str, operator: type) -> None:
    op = operator.op.lower()
    existing = registered.setdefault(op, operator)
    if existing is not operator:
        raise RuntimeError(f"different implementation for {kind} operator {op!r} already provided")


def register_unary_operator(operator: type["UnaryAttributeOperator"]):
    _register_operator(unary_operators, "unary", operator)


def register_binary_operator(operator: type["BinaryAttributeOperator"]):
    _register_operator(binary_operators, "binary", operator)


service_provider_config: ServiceProviderConfig = ServiceProviderConfig.create(
    patch={"supported": True},
    bulk={"supported": True, "max_operations": 1000, "max_payload_size": 1048576},
)


def set_service_provider_config(config: ServiceProviderConfig) -> None:
    """
    Sets global service provider configuration.
    """
    global service_provider_config
    service_provider_config = config
