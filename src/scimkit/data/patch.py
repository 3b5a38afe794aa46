import copy
import json
import logging
from collections.abc import Mapping, MutableMapping, Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Iterator, Optional, Union

from typing_extensions import Self

from scimkit import registry
from scimkit.config import ServiceProviderConfig
from scimkit.data.attrs import Attribute, AttributeMutability, Complex
from scimkit.data.coercion import coerce_items, coerce_single, coerce_value, parse_complex
from scimkit.data.identifiers import BoundedAttrRep, SchemaUri
from scimkit.data.path import PatchPath, ResolvedPath, resolve_path
from scimkit.data.schemas import ResourceSchema
from scimkit.data.scim_data import Missing, ScimData
from scimkit.error import (
    BadRequestError,
    InvalidPathError,
    InvalidValueError,
    MutabilityError,
    NoTargetError,
    NotSupportedError,
    ScimErrorType,
    ValidationError,
    ValidationIssues,
)

logger = logging.getLogger(__name__)


class PatchOperationType(str, Enum):
    ADD = "add"
    REPLACE = "replace"
    REMOVE = "remove"


class PatchOperation:
    """
    Single PATCH operation, as specified in
    [RFC-7644, section 3.5.2](https://www.rfc-editor.org/rfc/rfc7644#section-3.5.2).
    The `value` is `Missing` if the operation carries no value.
    """

    def __init__(
        self,
        type_: Union[str, PatchOperationType],
        path: Optional[PatchPath] = None,
        value: Any = Missing,
    ) -> None:
        self._type = PatchOperationType(type_)
        self._path = path
        self._value = value

    @property
    def type(self) -> PatchOperationType:
        return self._type

    @property
    def path(self) -> Optional[PatchPath]:
        return self._path

    @property
    def value(self) -> Any:
        return self._value

    @classmethod
    def validate(cls, data: Mapping) -> ValidationIssues:
        data = ScimData(data)
        issues = ValidationIssues()
        type_ = data.get("op")
        if not isinstance(type_, str) or type_.lower() not in list(PatchOperationType):
            issues.add_error(
                issue=ValidationError.must_be_one_of([item.value for item in PatchOperationType]),
                proceed=False,
                location=["op"],
            )
            return issues

        type_ = type_.lower()
        path = data.get("path")
        value = data.get("value")
        if path not in [None, Missing]:
            if not isinstance(path, str):
                issues.add_error(
                    issue=ValidationError.bad_type("string"), proceed=False, location=["path"]
                )
            else:
                issues.merge(PatchPath.validate(path), location=["path"])
        elif type_ == PatchOperationType.REMOVE:
            issues.add_error(
                issue=ValidationError.missing(ScimErrorType.NO_TARGET),
                proceed=False,
                location=["path"],
            )

        if type_ == PatchOperationType.REMOVE and value is not Missing:
            issues.add_error(
                issue=ValidationError.must_not_be_provided(),
                proceed=False,
                location=["value"],
            )
        elif type_ != PatchOperationType.REMOVE and value in [None, Missing]:
            issues.add_error(
                issue=ValidationError.missing(),
                proceed=False,
                location=["value"],
            )
        return issues

    @classmethod
    def deserialize(cls, data: Mapping) -> Self:
        """
        Deserializes the operation, given as a mapping with `op`, `path`, and `value` keys.

        Raises:
            ValueError: If `op` is unknown, or `path` is not valid path expression.
        """
        data = ScimData(data)
        type_ = data.get("op")
        if not isinstance(type_, str):
            raise ValueError(f"bad operation type {type_!r}")
        path_exp = data.get("path")
        path = PatchPath.deserialize(path_exp) if path_exp not in [None, Missing] else None
        return cls(type_.lower(), path, data.get("value"))

    def serialize(self) -> ScimData:
        data: dict[str, Any] = {"op": self._type.value}
        if self._path is not None:
            data["path"] = self._path.serialize()
        if self._value is not Missing:
            data["value"] = self._value
        return ScimData(data)

    def __repr__(self) -> str:
        path = self._path.serialize() if self._path is not None else None
        return f"PatchOperation({self._type.value}, {path!r})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, PatchOperation):
            return False
        return self._type == other.type and self._path == other.path and self.value == other.value


class PatchOperations:
    def __init__(self, operations: Sequence[PatchOperation]) -> None:
        self._operations = list(operations)

    def __getitem__(self, index: int) -> PatchOperation:
        return self._operations[index]

    def __iter__(self) -> Iterator[PatchOperation]:
        return iter(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    @classmethod
    def validate(cls, data: Iterable[Mapping]) -> ValidationIssues:
        issues = ValidationIssues()
        for i, operation in enumerate(data):
            issues.merge(PatchOperation.validate(operation), location=[i])
        return issues

    @classmethod
    def deserialize(cls, data: Iterable[Mapping]) -> Self:
        return cls([PatchOperation.deserialize(operation) for operation in data])

    def serialize(self) -> list[ScimData]:
        return [operation.serialize() for operation in self._operations]

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, PatchOperations):
            return False
        return self._operations == other._operations


def _to_operation(operation: Union[PatchOperation, Mapping]) -> PatchOperation:
    if isinstance(operation, PatchOperation):
        return operation
    issues = PatchOperation.validate(operation)
    if (first := issues.first_error()) is not None:
        location, error = first
        detail = f"bad operation {'.'.join(map(str, location))}: {error.message}"
        if "path" in location:
            raise InvalidPathError(detail, scim_type=error.scim_error)
        if error.code == 9:
            raise BadRequestError(detail, scim_type=ScimErrorType.INVALID_SYNTAX)
        raise InvalidValueError(detail)
    return PatchOperation.deserialize(operation)


def _is_populated(value: Any) -> bool:
    if value in [None, Missing, ""]:
        return False
    if isinstance(value, (list, Mapping)):
        return len(value) > 0
    return True


def _ensure_writable(attr: Attribute, label: str, old: Any, new: Any) -> None:
    if attr.mutability == AttributeMutability.READ_ONLY:
        raise MutabilityError(f"attribute {label!r} is read-only", attr=label)
    if attr.mutability == AttributeMutability.IMMUTABLE and _is_populated(old) and old != new:
        raise MutabilityError(
            f"attribute {label!r} is immutable and already has a value", attr=label
        )


def _ensure_removable(attr: Attribute, label: str) -> None:
    if attr.mutability == AttributeMutability.READ_ONLY:
        raise MutabilityError(f"attribute {label!r} is read-only", attr=label)
    if attr.required:
        raise MutabilityError(f"attribute {label!r} is required and can not be removed", attr=label)


def _is_primary(item: Any) -> bool:
    return isinstance(item, ScimData) and item.get("primary") is True


def _unmark_primary(items: list, keep: Iterable[int]) -> None:
    keep = set(keep)
    for i, item in enumerate(items):
        if i not in keep and _is_primary(item):
            items[i] = copy.deepcopy(item)
            items[i].pop("primary")


def _index_of_value(items: list, item: Any) -> Optional[int]:
    """Index of the element that holds the same `value` as the `item`, if any."""
    if not isinstance(item, ScimData) or item.get("value") in (Missing, None):
        return None
    for i, existing in enumerate(items):
        if isinstance(existing, ScimData) and existing.get("value") == item.get("value"):
            return i
    return None


class ResourcePatcher:
    """
    Applies PATCH operations to a resource described by the `ResourceSchema`. The resource
    is modified in place, and `apply` tells whether it has been observably changed.

    Examples:
        >>> patcher = ResourcePatcher(UserSchema())
        >>> user = ScimData({"userName": "bjensen"})
        >>> patcher.apply(user, [{"op": "replace", "path": "userName", "value": "bjensen"}])
        False
        >>> patcher.apply(user, [{"op": "add", "path": "nickName", "value": "Babs"}])
        True
    """

    def __init__(self, schema: ResourceSchema, config: Optional[ServiceProviderConfig] = None):
        self._schema = schema
        self._config = config

    @property
    def schema(self) -> ResourceSchema:
        return self._schema

    @property
    def config(self) -> ServiceProviderConfig:
        return self._config or registry.service_provider_config

    def apply(
        self,
        data: ScimData,
        operations: Iterable[Union[PatchOperation, Mapping]],
        touch_meta: bool = False,
    ) -> bool:
        """
        Applies operations one by one, in the provided order.

        Args:
            data: The resource to modify.
            operations: Operations to apply, deserialized or raw ones.
            touch_meta: Whether to set `meta.lastModified` to the current time, if the resource
                has been changed.

        Raises:
            InvalidPathError: If any path does not resolve against the schema.
            MutabilityError: If any operation modifies read-only attribute or already
                populated immutable attribute, or removes required attribute.
            InvalidValueError: If any operation value does not fit its target.
            NoTargetError: If value selection filter matches nothing.
            BadRequestError: If any operation is malformed.
            NotSupportedError: If PATCH is disabled in the configuration.

        Returns:
            Flag indicating whether any operation changed the resource.
        """
        if not self.config.patch.supported:
            raise NotSupportedError("PATCH operation is not supported")

        changed = False
        for operation in operations:
            operation = _to_operation(operation)
            operation_changed = self._apply_operation(data, operation)
            logger.debug(
                "Operation %r %s the resource",
                operation,
                "changed" if operation_changed else "did not change",
            )
            changed = operation_changed or changed
        if changed and touch_meta:
            data.set(
                "meta.lastModified",
                datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
            )
        return changed

    def _apply_operation(self, data: ScimData, operation: PatchOperation) -> bool:
        if operation.type == PatchOperationType.REMOVE:
            if operation.value is not Missing:
                raise InvalidValueError("remove operation must not carry a value")
            if operation.path is None:
                raise InvalidPathError(
                    "remove operation requires a path", scim_type=ScimErrorType.NO_TARGET
                )
            return self._remove(data, resolve_path(operation.path, self._schema))

        if operation.value in [None, Missing]:
            raise InvalidValueError(f"{operation.type.value} operation requires a value")

        if operation.path is None:
            return self._merge_resource(data, operation.value, operation.type)

        path = resolve_path(operation.path, self._schema)
        if path.is_extension:
            return self._merge_extension(data, path.extension, operation.value, operation.type)
        return self._write(data, path, operation.value, operation.type)

    @staticmethod
    def _as_mapping(value: Any, label: str) -> Mapping:
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError as e:
                raise InvalidValueError(f"unparsable JSON value for {label!r}") from e
        if not isinstance(value, Mapping):
            raise InvalidValueError(f"value for {label!r} must be an object")
        return value

    def _merge_resource(self, data: ScimData, value: Any, type_: PatchOperationType) -> bool:
        changed = False
        for key, item_value in self._as_mapping(value, "resource").items():
            if not isinstance(key, str):
                raise InvalidPathError(f"bad attribute name {key!r}")
            if key.lower() == "schemas":
                continue
            path = resolve_path(key, self._schema)
            if path.is_extension:
                changed = self._merge_extension(data, path.extension, item_value, type_) or changed
                continue
            if path.filter is not None:
                raise InvalidPathError(f"value selection filter not allowed in {key!r}")
            changed = self._write(data, path, item_value, type_) or changed
        return changed

    def _merge_extension(
        self, data: ScimData, extension: SchemaUri, value: Any, type_: PatchOperationType
    ) -> bool:
        changed = False
        for key, item_value in self._as_mapping(value, str(extension)).items():
            try:
                path = resolve_path(
                    PatchPath(attr_rep=BoundedAttrRep(schema=extension, attr=key)), self._schema
                )
            except ValueError as e:
                raise InvalidPathError(f"bad attribute name {key!r} in {str(extension)!r}") from e
            changed = self._write(data, path, item_value, type_) or changed
        return changed

    def _write(
        self, data: ScimData, path: ResolvedPath, value: Any, type_: PatchOperationType
    ) -> bool:
        attr, attr_rep = path.attr, path.attr_rep
        if attr.mutability == AttributeMutability.READ_ONLY:
            raise MutabilityError(f"attribute {str(attr_rep)!r} is read-only", attr=str(attr_rep))

        if path.filter is not None and path.sub_attr is not None:
            changed = self._write_filtered_sub_attr(data, path, value, type_)
        elif path.filter is not None:
            changed = self._write_filtered_items(data, path, value, type_)
        elif path.sub_attr is not None:
            changed = self._write_sub_attr(data, path, value, type_)
        elif attr.multi_valued:
            changed = self._write_multi_valued(data, path, value, type_)
        elif isinstance(attr, Complex):
            changed = self._write_complex(data, path, coerce_single(attr, value), type_)
        else:
            changed = self._write_simple(data, path, coerce_single(attr, value))

        if changed:
            self._validate(data, path)
            if attr_rep.extension:
                self._include_extension_schema(data, attr_rep.schema)
        return changed

    @staticmethod
    def _write_simple(data: ScimData, path: ResolvedPath, new: Any) -> bool:
        old = data.get(path.attr_rep)
        if old == new:
            return False
        _ensure_writable(path.attr, str(path.attr_rep), old, new)
        data.set(path.attr_rep, new)
        return True

    @staticmethod
    def _merge_complex_value(
        attr: Complex,
        label: str,
        old: Optional[ScimData],
        new: ScimData,
        type_: PatchOperationType,
    ) -> tuple[ScimData, bool]:
        merged = copy.deepcopy(old) if isinstance(old, ScimData) else ScimData()
        changed = False
        for name, sub_value in new.items():
            sub_attr = attr.attrs.get(name)
            sub_label = f"{label}.{sub_attr.name}"
            old_sub_value = merged.get(name)
            if sub_attr.mutability == AttributeMutability.READ_ONLY:
                raise MutabilityError(f"attribute {sub_label!r} is read-only", attr=sub_label)
            if (
                sub_attr.multi_valued
                and type_ == PatchOperationType.ADD
                and isinstance(old_sub_value, list)
            ):
                sub_value = old_sub_value + [v for v in sub_value if v not in old_sub_value]
            if old_sub_value == sub_value:
                continue
            _ensure_writable(sub_attr, sub_label, old_sub_value, sub_value)
            merged.set(name, sub_value)
            changed = True
        return merged, changed

    def _write_complex(
        self, data: ScimData, path: ResolvedPath, new: ScimData, type_: PatchOperationType
    ) -> bool:
        old = data.get(path.attr_rep)
        merged, changed = self._merge_complex_value(
            path.attr, str(path.attr_rep), old if old is not Missing else None, new, type_
        )
        if not changed:
            return False
        _ensure_writable(path.attr, str(path.attr_rep), old, merged)
        data.set(path.attr_rep, merged)
        return True

    @staticmethod
    def _check_new_items(attr: Attribute, label: str, items: list) -> None:
        if not isinstance(attr, Complex):
            return
        for item in items:
            for name in item:
                sub_attr = attr.attrs.get(name)
                if sub_attr.mutability == AttributeMutability.READ_ONLY:
                    sub_label = f"{label}.{sub_attr.name}"
                    raise MutabilityError(f"attribute {sub_label!r} is read-only", attr=sub_label)
        if sum(1 for item in items if _is_primary(item)) > 1:
            raise InvalidValueError(
                f"more than one value of {label!r} is marked as primary", attr=label
            )

    def _write_multi_valued(
        self, data: ScimData, path: ResolvedPath, value: Any, type_: PatchOperationType
    ) -> bool:
        attr, label = path.attr, str(path.attr_rep)
        new_items = coerce_items(attr, value)
        self._check_new_items(attr, label, new_items)
        old = data.get(path.attr_rep)
        old_items = list(old) if isinstance(old, list) else []

        if type_ == PatchOperationType.REPLACE:
            if old_items == new_items:
                return False
            _ensure_writable(attr, label, old_items, new_items)
            if new_items:
                data.set(path.attr_rep, new_items)
            else:
                self._pop(data, path.attr_rep)
            return True

        items = list(old_items)
        primary_index = None
        for item in new_items:
            index = _index_of_value(items, item)
            if index is None and item in items:
                index = items.index(item)
            elif index is None:
                items.append(item)
                index = len(items) - 1
            elif isinstance(attr, Complex):
                items[index], _ = self._merge_complex_value(
                    attr, label, items[index], item, type_
                )
            if _is_primary(item):
                primary_index = index
        if primary_index is not None:
            _unmark_primary(items, keep=[primary_index])
        if items == old_items:
            return False
        _ensure_writable(attr, label, old_items, items)
        data.set(path.attr_rep, items)
        return True

    @staticmethod
    def _matching_indexes(data: ScimData, path: ResolvedPath) -> tuple[list, list[int]]:
        items = data.get(path.attr_rep)
        if not isinstance(items, list):
            return [], []
        matches = [
            i
            for i, item in enumerate(items)
            if isinstance(item, ScimData) and path.filter(item, path.attr)
        ]
        return items, matches

    def _write_filtered_items(
        self, data: ScimData, path: ResolvedPath, value: Any, type_: PatchOperationType
    ) -> bool:
        attr, label = path.attr, str(path)
        items, matches = self._matching_indexes(data, path)
        if not matches:
            raise NoTargetError(f"no values match {label!r}", path=label)
        if isinstance(value, list):
            if len(value) != 1:
                raise InvalidValueError(f"exactly one value expected for {label!r}", path=label)
            value = value[0]
        new = parse_complex(attr, value)
        self._check_new_items(attr, label, [new])

        updated = list(items)
        for i in matches:
            if type_ == PatchOperationType.REPLACE:
                updated[i] = copy.deepcopy(new)
            else:
                updated[i], _ = self._merge_complex_value(
                    attr, str(path.attr_rep), items[i], new, type_
                )
        if updated == items:
            return False
        _ensure_writable(attr, str(path.attr_rep), items, updated)
        if _is_primary(new):
            _unmark_primary(updated, keep=matches)
        data.set(path.attr_rep, updated)
        return True

    def _write_filtered_sub_attr(
        self, data: ScimData, path: ResolvedPath, value: Any, type_: PatchOperationType
    ) -> bool:
        label = str(path)
        items, matches = self._matching_indexes(data, path)
        if not matches:
            raise NoTargetError(f"no values match {label!r}", path=label)
        new = ScimData()
        new.set(path.sub_attr.name, coerce_value(path.sub_attr, value))

        updated = list(items)
        for i in matches:
            updated[i], _ = self._merge_complex_value(
                path.attr, str(path.attr_rep), items[i], new, type_
            )
        if updated == items:
            return False
        _ensure_writable(path.attr, str(path.attr_rep), items, updated)
        if _is_primary(new):
            _unmark_primary(updated, keep=matches)
        data.set(path.attr_rep, updated)
        return True

    def _write_sub_attr(
        self, data: ScimData, path: ResolvedPath, value: Any, type_: PatchOperationType
    ) -> bool:
        new = ScimData()
        new.set(path.sub_attr.name, coerce_value(path.sub_attr, value))
        if not path.attr.multi_valued:
            return self._write_complex(data, path, new, type_)

        items = data.get(path.attr_rep)
        if not isinstance(items, list) or not items:
            return False
        updated = [
            self._merge_complex_value(path.attr, str(path.attr_rep), item, new, type_)[0]
            for item in items
        ]
        if updated == items:
            return False
        _ensure_writable(path.attr, str(path.attr_rep), items, updated)
        data.set(path.attr_rep, updated)
        return True

    def _remove(self, data: ScimData, path: ResolvedPath) -> bool:
        if path.is_extension:
            return self._remove_extension(data, path.extension)

        attr, attr_rep = path.attr, path.attr_rep
        if attr.mutability == AttributeMutability.READ_ONLY:
            raise MutabilityError(f"attribute {str(attr_rep)!r} is read-only", attr=str(attr_rep))

        old = data.get(attr_rep)
        if path.filter is not None:
            changed = self._remove_filtered(data, path)
        elif path.sub_attr is not None:
            changed = self._remove_sub_attr(data, path)
        else:
            _ensure_removable(attr, str(attr_rep))
            changed = _is_populated(old)
            if old is not Missing:
                self._pop(data, attr_rep)
        if changed and attr_rep.extension:
            self._exclude_extension_schema(data, attr_rep.schema)
        return changed

    def _remove_extension(self, data: ScimData, extension: SchemaUri) -> bool:
        namespace = data.get(str(extension))
        if not isinstance(namespace, ScimData):
            return False
        for _, attr in self._schema.get_extension(extension).attrs:
            if namespace.get(attr.name) is not Missing:
                _ensure_removable(attr, f"{extension}:{attr.name}")
        data.pop(str(extension))
        self._exclude_extension_schema(data, extension)
        return _is_populated(namespace)

    def _remove_filtered(self, data: ScimData, path: ResolvedPath) -> bool:
        label = str(path)
        items, matches = self._matching_indexes(data, path)
        if not matches:
            raise NoTargetError(f"no values match {label!r}", path=label)

        if path.sub_attr is None:
            attr_label = str(path.attr_rep)
            if path.attr.required and len(matches) == len(items):
                raise MutabilityError(
                    f"attribute {attr_label!r} is required and can not be removed",
                    attr=attr_label,
                )
            remaining = [item for i, item in enumerate(items) if i not in matches]
        else:
            sub_label = str(path.sub_attr_rep)
            remaining = []
            for i, item in enumerate(items):
                if i in matches and item.get(path.sub_attr.name) is not Missing:
                    _ensure_removable(path.sub_attr, sub_label)
                    item = copy.deepcopy(item)
                    item.pop(path.sub_attr.name)
                if len(item) > 0:
                    remaining.append(item)
        if remaining == items:
            return False
        if remaining:
            data.set(path.attr_rep, remaining)
        else:
            self._pop(data, path.attr_rep)
        return True

    def _remove_sub_attr(self, data: ScimData, path: ResolvedPath) -> bool:
        old = data.get(path.attr_rep)
        if old is Missing:
            return False
        sub_label = str(path.sub_attr_rep)
        sub_name = path.sub_attr.name
        if path.attr.multi_valued:
            items = old if isinstance(old, list) else []
            remaining = []
            changed = False
            for item in items:
                if item.get(sub_name) is not Missing:
                    _ensure_removable(path.sub_attr, sub_label)
                    item = copy.deepcopy(item)
                    item.pop(sub_name)
                    changed = True
                if len(item) > 0:
                    remaining.append(item)
            if not changed:
                return False
            if remaining:
                data.set(path.attr_rep, remaining)
            else:
                self._pop(data, path.attr_rep)
            return True

        old_sub_value = old.get(sub_name)
        if old_sub_value is Missing:
            return False
        _ensure_removable(path.sub_attr, sub_label)
        updated = copy.deepcopy(old)
        updated.pop(sub_name)
        if len(updated) > 0:
            data.set(path.attr_rep, updated)
        else:
            self._pop(data, path.attr_rep)
        return _is_populated(old_sub_value)

    @staticmethod
    def _pop(data: ScimData, attr_rep: BoundedAttrRep) -> None:
        data.pop(attr_rep)
        if attr_rep.extension:
            namespace = data.get(str(attr_rep.schema))
            if isinstance(namespace, ScimData) and len(namespace) == 0:
                data.pop(str(attr_rep.schema))

    def _validate(self, data: ScimData, path: ResolvedPath) -> None:
        issues = path.attr.validate(data.get(path.attr_rep))
        for location, errors in issues.errors:
            where = ".".join([str(path.attr_rep), *map(str, location)])
            raise InvalidValueError(
                f"bad value of {where!r}: {errors[0].message}", attr=str(path.attr_rep)
            )
        for location, warnings in issues.warnings:
            for warning in warnings:
                logger.warning(
                    "Value of %r: %s",
                    ".".join([str(path.attr_rep), *map(str, location)]),
                    warning.message,
                )

    @staticmethod
    def _include_extension_schema(data: ScimData, schema: SchemaUri) -> None:
        schemas = data.get("schemas")
        if isinstance(schemas, list) and schema not in [SchemaUri(item) for item in schemas]:
            data.set("schemas", schemas + [str(schema)])

    @staticmethod
    def _exclude_extension_schema(data: ScimData, schema: SchemaUri) -> None:
        schemas = data.get("schemas")
        if isinstance(schemas, list) and data.get(str(schema)) is Missing:
            data.set("schemas", [item for item in schemas if SchemaUri(item) != schema])


def patch_resource(
    data: MutableMapping[str, Any],
    operations: Iterable[Union[PatchOperation, Mapping]],
    schema: ResourceSchema,
    config: Optional[ServiceProviderConfig] = None,
) -> tuple[MutableMapping[str, Any], bool]:
    """
    Applies PATCH operations to the resource. The resource is modified in place, also when
    it is plain dictionary, so the caller must snapshot it beforehand, if rollback is needed.
    After failure, the resource may be partially modified and should be discarded.

    Returns:
        The same resource object and flag indicating whether it has been changed.

    Raises:
        InvalidPathError, MutabilityError, InvalidValueError, NoTargetError, BadRequestError,
        NotSupportedError: See `ResourcePatcher.apply`.
    """
    if isinstance(data, ScimData):
        return data, ResourcePatcher(schema, config=config).apply(data, operations)

    scim_data = ScimData(data)
    try:
        changed = ResourcePatcher(schema, config=config).apply(scim_data, operations)
    finally:
        data.clear()
        data.update(scim_data.to_dict())
    return data, changed
