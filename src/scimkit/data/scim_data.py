from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union

from scimkit.data.identifiers import AttrRep, AttrRepFactory, BoundedAttrRep, SchemaUri
from scimkit.registry import schemas


class MissingType:
    _instance = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls, *args, **kwargs)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Missing"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self


Missing = MissingType()


@dataclass
class _SchemaKey:
    schema: str


@dataclass
class _AttrKey:
    attr: str
    sub_attr: Optional[str]


@dataclass
class _BoundedAttrKey(_AttrKey):
    schema: str
    extension: bool


_Key = Union[str, AttrRep, _SchemaKey, _AttrKey]


class ScimData(MutableMapping):
    """
    Mutable, ordered mapping that represents a SCIM resource, or its fragment. Keys are
    case-insensitive, as attribute names and schema URIs are, but the original casing of
    the first-seen key is kept. Keys can be plain names, dotted sub-attribute names,
    schema extension URIs, or attribute representations.

    Nested mappings are converted to `ScimData` when set, so the whole tree has the same
    semantics.

    Examples:
        >>> data = ScimData({"userName": "bjensen", "name": {"givenName": "Barbara"}})
        >>> data["USERNAME"]
        "bjensen"
        >>> data.get("name.givenName")
        "Barbara"
        >>> data.set(
        >>>     "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User:manager.value",
        >>>     "26118915-6090-4610-87e4-49d8ca9f808d",
        >>> )
        >>> data.to_dict()
        {
            "userName": "bjensen",
            "name": {"givenName": "Barbara"},
            "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User": {
                "manager": {"value": "26118915-6090-4610-87e4-49d8ca9f808d"}
            }
        }
    """

    def __init__(
        self, d: Optional[Union[Mapping[str, Any], Mapping[AttrRep, Any], "ScimData"]] = None
    ):
        """
        Args:
            d: Optional data to initialize `ScimData` with. If `ScimData` is provided, the new
                instance shares the content with it. Other mappings are copied, and every key
                that is not `str` or `AttrRep` is ignored.
        """
        self._data: dict[str, Any] = {}
        self._lower_case_to_original: dict[str, str] = {}

        if isinstance(d, ScimData):
            self._data = d._data
            self._lower_case_to_original = d._lower_case_to_original
        elif isinstance(d, Mapping):
            for key, value in d.items():
                if not isinstance(key, (str, AttrRep)):
                    continue
                self.set(key, value)

    def __repr__(self):
        return f"{self.__class__.__name__}({str(self._data)})"

    def __getitem__(self, key: _Key):
        value = self.get(key)
        if value is Missing:
            raise KeyError(key)
        return value

    def __setitem__(self, key: _Key, value: Any):
        self.set(key, value)

    def __delitem__(self, key: _Key):
        value = self.pop(key)
        if value is Missing:
            raise KeyError(key)

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self):
        return iter(self._data)

    def __contains__(self, key: Any) -> bool:
        if not isinstance(key, (str, AttrRep)):
            return False
        return self.get(key) is not Missing

    def _original(self, key: str) -> Optional[str]:
        return self._lower_case_to_original.get(key.lower())

    def _namespace(self, schema: str, create: bool) -> Optional["ScimData"]:
        original = self._original(schema)
        if original is None:
            if not create:
                return None
            original = schema
            self._lower_case_to_original[schema.lower()] = schema
            self._data[schema] = ScimData()
        namespace = self._data[original]
        if not isinstance(namespace, ScimData):
            raise KeyError(f"{schema!r} is not a schema extension namespace")
        return namespace

    def set(self, key: _Key, value: Any) -> None:
        """
        Sets the entry in the mapping. Equivalent to `data[key] = value`. Sub-attribute keys
        create the parent complex value if it does not exist yet, and bounded keys of extension
        attributes are nested in the extension's namespace.

        Raises:
            KeyError: If trying to set sub-attribute value to existing parent that is
                not single-valued complex attribute value.
        """
        if isinstance(value, Mapping) and not isinstance(value, ScimData):
            value = ScimData(value)
        elif not isinstance(value, (str, bytes, ScimData)) and isinstance(value, Iterable):
            value = [
                ScimData(item)
                if isinstance(item, Mapping) and not isinstance(item, ScimData)
                else item
                for item in value
            ]

        if not isinstance(key, (_SchemaKey, _AttrKey)):
            key = self._normalize(key)

        if isinstance(key, _SchemaKey):
            original = self._original(key.schema)
            if original is None:
                original = key.schema
                self._lower_case_to_original[key.schema.lower()] = original
            self._data[original] = value
            return

        if isinstance(key, _BoundedAttrKey) and key.extension:
            namespace = self._namespace(key.schema, create=True)
            namespace.set(_AttrKey(attr=key.attr, sub_attr=key.sub_attr), value)
            return

        if not key.sub_attr:
            original = self._original(key.attr)
            if original is None:
                original = key.attr
                self._lower_case_to_original[key.attr.lower()] = original
            self._data[original] = value
            return

        parent_key = self._original(key.attr)
        if parent_key is None:
            parent_key = key.attr
            self._lower_case_to_original[parent_key.lower()] = parent_key
            self._data[parent_key] = ScimData()

        parent_value = self._data[parent_key]
        if not isinstance(parent_value, ScimData):
            raise KeyError(f"can not assign ({key.sub_attr}, {value}) to '{key.attr}'")
        parent_value.set(_AttrKey(attr=key.sub_attr, sub_attr=None), value)

    def get(self, key: _Key, default: Any = Missing) -> Any:
        """
        Returns the value for the specified `key`. If not found, the specified `default`
        is returned (`Missing` object by default). Getting sub-attribute of multi-valued
        complex attribute returns list of sub-attribute values of every item.

        Examples:
            >>> data = ScimData({"emails": [{"type": "work"}, {"type": "home"}]})
            >>> data.get("emails.type")
            ["work", "home"]
            >>> data.get("unknown")
            Missing
        """
        if not isinstance(key, (_SchemaKey, _AttrKey)):
            key = self._normalize(key)

        if isinstance(key, _SchemaKey):
            original = self._original(key.schema)
            if original is None:
                return default
            return self._data.get(original, default)

        if isinstance(key, _BoundedAttrKey) and key.extension:
            namespace = self._namespace(key.schema, create=False)
            if namespace is None:
                return default
            return namespace.get(_AttrKey(attr=key.attr, sub_attr=key.sub_attr), default)

        attr = self._original(key.attr)
        if attr is None:
            return default

        if key.sub_attr:
            attr_value = self._data[attr]
            if isinstance(attr_value, ScimData):
                return attr_value.get(_AttrKey(attr=key.sub_attr, sub_attr=None), default)
            if isinstance(attr_value, list):
                return [
                    item.get(_AttrKey(attr=key.sub_attr, sub_attr=None))
                    if isinstance(item, ScimData)
                    else default
                    for item in attr_value
                ]
            return default
        return self._data.get(attr, default)

    def pop(self, key: _Key, default: Any = Missing) -> Any:
        """
        Pops the `key` from the data. Works similarly to `get` with the difference that after
        returning the value, it is not available in the data any longer.
        """
        if not isinstance(key, (_SchemaKey, _AttrKey)):
            key = self._normalize(key)

        if isinstance(key, _SchemaKey):
            original = self._lower_case_to_original.pop(key.schema.lower(), None)
            if original is None:
                return default
            return self._data.pop(original, default)

        if isinstance(key, _BoundedAttrKey) and key.extension:
            namespace = self._namespace(key.schema, create=False)
            if namespace is None:
                return default
            return namespace.pop(_AttrKey(attr=key.attr, sub_attr=key.sub_attr), default)

        attr = self._original(key.attr)
        if attr is None:
            return default

        if key.sub_attr:
            attr_value = self._data[attr]
            if isinstance(attr_value, ScimData):
                return attr_value.pop(_AttrKey(attr=key.sub_attr, sub_attr=None), default)
            if isinstance(attr_value, list):
                return [
                    item.pop(_AttrKey(attr=key.sub_attr, sub_attr=None), default)
                    if isinstance(item, ScimData)
                    else default
                    for item in attr_value
                ]
            return default

        self._lower_case_to_original.pop(key.attr.lower())
        return self._data.pop(attr, default)

    @staticmethod
    def _normalize(value: Union[str, AttrRep]) -> Union[_SchemaKey, _AttrKey]:
        if isinstance(value, str) and not isinstance(value, AttrRep):
            try:
                uri = SchemaUri(value)
            except ValueError:
                uri = None
            if uri is not None and uri in schemas:
                return _SchemaKey(schema=str(value))
            value = AttrRepFactory.deserialize(value)

        if isinstance(value, BoundedAttrRep):
            return _BoundedAttrKey(
                schema=str(value.schema),
                attr=str(value.attr),
                sub_attr=str(value.sub_attr) if value.is_sub_attr else None,
                extension=value.extension,
            )
        return _AttrKey(
            attr=str(value.attr),
            sub_attr=str(value.sub_attr) if value.is_sub_attr else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Converts the `ScimData` to ordinary dictionary.
        """
        output: dict[str, Any] = {}
        for key, value in self._data.items():
            if isinstance(value, ScimData):
                output[key] = value.to_dict()
            elif isinstance(value, list):
                output[key] = [
                    item.to_dict() if isinstance(item, ScimData) else item for item in value
                ]
            else:
                output[key] = value
        return output

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Mapping) and not isinstance(other, ScimData):
            other = ScimData(other)

        if not isinstance(other, ScimData):
            return False

        if len(self) != len(other):
            return False

        for key, value in self._data.items():
            if other.get(_AttrKey(attr=key, sub_attr=None)) != value:
                return False

        return True
