import logging
from collections.abc import Mapping
from typing import Any, Iterable, Optional

from scimkit.bulk.cycles import CircularReferenceDetector
from scimkit.bulk.references import (
    ArrayElementReference,
    AttributeReference,
    BulkIdReference,
    PatchValueReference,
    UriSegmentReference,
    find_embedded_bulk_ids,
    parse_bulk_id_reference,
)
from scimkit.data.attrs import (
    Attribute,
    AttributeMutability,
    Complex,
    Reference,
    ScimReference,
    String,
)
from scimkit.data.identifiers import BoundedAttrRep
from scimkit.data.path import resolve_path
from scimkit.data.schemas import ResourceSchema
from scimkit.data.scim_data import Missing, ScimData
from scimkit.error import BadRequestError, InvalidPathError

logger = logging.getLogger(__name__)


class OperationReferences:
    """
    bulkId references found in a single bulk operation, that is its path and its payload
    (resource, or patch request). References are replaced in the payload as referenced
    resources get created, and forgotten once replaced.
    """

    def __init__(
        self,
        bulk_id: Optional[str],
        method: str,
        path: str,
        data: Optional[Mapping[str, Any]] = None,
    ):
        self.bulk_id = bulk_id
        self.method = method.upper()
        self.segments = path.split("/")
        self.data = ScimData(data) if data is not None else None
        self._references: dict[str, list[BulkIdReference]] = {}

    def __repr__(self) -> str:
        return f"OperationReferences({self.method} {self.path}, bulkId={self.bulk_id!r})"

    @property
    def path(self) -> str:
        return "/".join(self.segments)

    @property
    def endpoint(self) -> str:
        return "/" + self.segments[1] if len(self.segments) > 1 else ""

    @property
    def resource_id(self) -> Optional[str]:
        return self.segments[2] if len(self.segments) > 2 else None

    @property
    def is_patch(self) -> bool:
        return self.method == "PATCH"

    @property
    def referenced_bulk_ids(self) -> set[str]:
        """bulkIds that are referenced, and not resolved yet."""
        return set(self._references)

    @property
    def unresolved_count(self) -> int:
        """Number of reference occurrences that are still to be replaced."""
        return sum(len(references) for references in self._references.values())

    @property
    def has_unresolved(self) -> bool:
        return bool(self._references)

    @property
    def has_self_reference(self) -> bool:
        return self.bulk_id is not None and self.bulk_id in self._references

    def payload(self) -> Optional[dict[str, Any]]:
        """Operation data, with all resolved references replaced."""
        return self.data.to_dict() if self.data is not None else None

    def add(self, references: Iterable[BulkIdReference]) -> None:
        for reference in references:
            self._references.setdefault(reference.bulk_id, []).append(reference)

    def resolve(self, bulk_id: str, resource_id: str) -> bool:
        """
        Replaces all references to `bulk_id` with `resource_id`. Returns flag indicating
        whether any reference was replaced.
        """
        references = self._references.pop(bulk_id, None)
        if not references:
            return False
        for reference in references:
            reference.replace(resource_id)
        logger.debug(
            "Replaced %d reference(s) to bulkId %r with %r in operation %r",
            len(references),
            bulk_id,
            resource_id,
            self.bulk_id,
        )
        return True


def _items(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    return [value]


def is_complex_candidate(attr: Attribute) -> bool:
    """
    Complex attributes that reference other resources with their `value` sub-attribute,
    e.g. group `members`, or enterprise user `manager`.
    """
    return (
        isinstance(attr, Complex)
        and isinstance(attr.attrs.get("value"), (String, Reference))
        and isinstance(attr.attrs.get("$ref"), ScimReference)
    )


def is_simple_candidate(attr: Attribute) -> bool:
    """
    Writable SCIM reference attributes, that reference other resources directly.
    """
    return isinstance(attr, ScimReference) and attr.mutability != AttributeMutability.READ_ONLY


def _scan_simple(container: ScimData, key: str, value: Any) -> list[BulkIdReference]:
    references: list[BulkIdReference] = []
    if isinstance(value, list):
        for index, item in enumerate(value):
            if (bulk_id := parse_bulk_id_reference(item)) is not None:
                references.append(ArrayElementReference(array=value, index=index, bulk_id=bulk_id))
    elif (bulk_id := parse_bulk_id_reference(value)) is not None:
        references.append(AttributeReference(container=container, key=key, bulk_id=bulk_id))
    return references


def _scan_complex(attr: Complex, value: Any) -> list[BulkIdReference]:
    references: list[BulkIdReference] = []
    candidate = is_complex_candidate(attr)
    for item in _items(value):
        if not isinstance(item, ScimData):
            continue
        if candidate:
            references.extend(_scan_simple(item, "value", item.get("value")))
            continue
        for sub_attr_name, sub_attr in attr.attrs:
            if is_simple_candidate(sub_attr):
                sub_value = item.get(sub_attr_name)
                if sub_value is not Missing:
                    references.extend(_scan_simple(item, sub_attr_name, sub_value))
    return references


def _scan_attrs(
    container: ScimData, attrs: Iterable[tuple[BoundedAttrRep, Attribute]]
) -> list[BulkIdReference]:
    references: list[BulkIdReference] = []
    for _, attr in attrs:
        value = container.get(attr.name)
        if value is Missing:
            continue
        if isinstance(attr, Complex):
            references.extend(_scan_complex(attr, value))
        elif is_simple_candidate(attr):
            references.extend(_scan_simple(container, attr.name, value))
    return references


def scan_resource(data: ScimData, schema: ResourceSchema) -> list[BulkIdReference]:
    """
    Finds bulkId references in the resource, or its fragment. Complex attributes whose
    `value` sub-attribute references other resources, and writable SCIM reference attributes
    are checked, in the base schema and in the extensions.
    """
    references = _scan_attrs(data, schema.attrs.core_attrs())
    for extension_uri, extension_attrs in schema.attrs.extensions.items():
        namespace = data.get(str(extension_uri))
        if isinstance(namespace, ScimData):
            references.extend(_scan_attrs(namespace, extension_attrs))
    return references


def _scan_patch_strings(operation: ScimData, value: Any) -> list[BulkIdReference]:
    references: list[BulkIdReference] = []
    if isinstance(value, str):
        for bulk_id in find_embedded_bulk_ids(value):
            references.append(PatchValueReference(operation=operation, bulk_id=bulk_id))
    elif isinstance(value, list):
        for index, item in enumerate(value):
            if not isinstance(item, str):
                continue
            for bulk_id in find_embedded_bulk_ids(item):
                references.append(
                    PatchValueReference(operation=operation, bulk_id=bulk_id, index=index)
                )
    return references


def _scan_patch_operation(
    operation: ScimData, path: str, value: Any, schema: ResourceSchema
) -> list[BulkIdReference]:
    try:
        resolved = resolve_path(path, schema)
    except InvalidPathError:
        # the operation fails on its own when applied, with the detailed error
        logger.debug("Not looking for bulkId references under invalid path %r", path)
        return []

    if resolved.is_extension:
        fragment = value[0] if isinstance(value, list) and len(value) == 1 else value
        if not isinstance(fragment, ScimData):
            return []
        return _scan_attrs(fragment, schema.attrs.extensions[resolved.extension])

    attr = resolved.attr
    if resolved.sub_attr is not None:
        if (
            is_complex_candidate(attr) and resolved.sub_attr_name == "value"
        ) or is_simple_candidate(resolved.sub_attr):
            return _scan_patch_strings(operation, value)
        return []

    references: list[BulkIdReference] = []
    if is_complex_candidate(attr) or is_simple_candidate(attr):
        references.extend(_scan_patch_strings(operation, value))
    if isinstance(attr, Complex):
        references.extend(_scan_complex(attr, value))
    return references


def scan_patch(data: ScimData, schema: ResourceSchema) -> list[BulkIdReference]:
    """
    Finds bulkId references in the values of `add` and `replace` patch operations. Values
    of operations without path are treated as resource fragments. Values of operations with
    path are checked if the path targets attribute that can reference other resource. String
    values can be serialized fragments, so references are looked for anywhere in the string.
    """
    references: list[BulkIdReference] = []
    operations = data.get("Operations")
    if not isinstance(operations, list):
        return references

    for operation in operations:
        if not isinstance(operation, ScimData):
            continue
        op = operation.get("op")
        # removals have no values, so they can not reference anything
        if not isinstance(op, str) or op.lower() not in ("add", "replace"):
            continue
        value = operation.get("value")
        if value in (Missing, None):
            continue
        path = operation.get("path")
        if path in (Missing, None):
            fragment = value[0] if isinstance(value, list) and len(value) == 1 else value
            if isinstance(fragment, ScimData):
                references.extend(scan_resource(fragment, schema))
            continue
        if isinstance(path, str):
            references.extend(_scan_patch_operation(operation, path, value, schema))
    return references


def scan_uri(segments: list[str]) -> list[BulkIdReference]:
    """
    Finds bulkId reference in the resource identifier segment of the operation path.
    """
    if len(segments) < 3:
        return []
    bulk_id = parse_bulk_id_reference(segments[2])
    if bulk_id is None:
        return []
    return [UriSegmentReference(segments=segments, index=2, bulk_id=bulk_id)]


class BulkIdResolver:
    """
    Resolves bulkId references within a single bulk request. Each operation is registered
    with `create_resolver`, which finds references in the operation and checks them for
    self-references and circles. As operations creating resources complete,
    `add_resolved_bulk_id` replaces references to them in all registered operations.

    The instance must not be shared between bulk requests.

    Args:
        resource_schemas: Schemas of resources that can be processed in bulk requests.
    """

    def __init__(self, resource_schemas: Iterable[ResourceSchema]):
        self._resource_schemas = {
            schema.endpoint.lower(): schema for schema in resource_schemas
        }
        self._resolved_bulk_ids: dict[str, str] = {}
        self._registered_bulk_ids: set[str] = set()
        self._pending: list[OperationReferences] = []
        self._detector = CircularReferenceDetector()

    def get_resource_schema(self, path: str) -> Optional[ResourceSchema]:
        segments = path.split("/")
        if len(segments) < 2:
            return None
        return self._resource_schemas.get(f"/{segments[1]}".lower())

    def create_resolver(
        self,
        bulk_id: Optional[str],
        path: str,
        data: Optional[Mapping[str, Any]] = None,
        method: str = "POST",
    ) -> OperationReferences:
        """
        Registers the bulk operation, finds bulkId references in its `path` and `data`, and
        replaces the ones that are already resolved.

        Raises:
            BadRequestError: If the operation targets unknown resource, or its bulkId is
                already used, or any of references is malformed, or the operation
                references itself.
            ConflictError: If the operation references itself through other operations.
        """
        schema = self.get_resource_schema(path)
        if schema is None:
            raise BadRequestError(f"unknown bulk operation resource {path!r}", path=path)
        if bulk_id is not None and self.is_duplicate_bulk_id(bulk_id):
            raise BadRequestError(
                f"the bulkId {bulk_id!r} is used by more than one operation", bulk_id=bulk_id
            )

        try:
            operation = OperationReferences(bulk_id=bulk_id, method=method, path=path, data=data)
        except ValueError as e:
            raise BadRequestError(f"bad data of bulk operation {bulk_id!r}", bulk_id=bulk_id) from e

        operation.add(scan_uri(operation.segments))
        if operation.data is not None:
            if operation.is_patch:
                operation.add(scan_patch(operation.data, schema))
            else:
                operation.add(scan_resource(operation.data, schema))

        if operation.has_self_reference:
            raise BadRequestError(
                f"the bulkId {bulk_id!r} is a self-reference, self-references are not resolved",
                bulk_id=bulk_id,
            )
        if bulk_id is not None:
            self._registered_bulk_ids.add(bulk_id)
            self._detector.register(bulk_id, operation.referenced_bulk_ids)

        for resolved_bulk_id, resource_id in self._resolved_bulk_ids.items():
            operation.resolve(resolved_bulk_id, resource_id)
        if operation.has_unresolved:
            self._pending.append(operation)
        logger.debug(
            "Registered operation %r with %d unresolved reference(s)",
            operation,
            operation.unresolved_count,
        )
        return operation

    def add_resolved_bulk_id(self, bulk_id: Optional[str], resource_id: str) -> None:
        """
        Replaces references to `bulk_id` with `resource_id` in all registered operations.
        Operations with no references left are no longer tracked.
        """
        if not bulk_id:
            return
        self._resolved_bulk_ids[bulk_id] = resource_id
        for operation in self._pending:
            operation.resolve(bulk_id, resource_id)
        self._pending = [operation for operation in self._pending if operation.has_unresolved]
        logger.debug("Resolved bulkId %r to %r", bulk_id, resource_id)

    def is_open_bulk_id_references(self) -> bool:
        """Returns flag indicating whether any of registered operations has unresolved references."""
        return any(operation.has_unresolved for operation in self._pending)

    def open_bulk_id_references(self) -> dict[Optional[str], set[str]]:
        """Unresolved bulkIds by bulkIds of the operations that reference them."""
        return {
            operation.bulk_id: operation.referenced_bulk_ids
            for operation in self._pending
            if operation.has_unresolved
        }

    def is_duplicate_bulk_id(self, bulk_id: str) -> bool:
        """Returns flag indicating whether the `bulk_id` is already used by other operation."""
        return bulk_id in self._registered_bulk_ids or bulk_id in self._resolved_bulk_ids
