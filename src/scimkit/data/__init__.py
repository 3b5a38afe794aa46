from scimkit.data.attrs import (
    Attribute,
    AttributeMutability,
    AttributeReturn,
    Attrs,
    Binary,
    Boolean,
    BoundedAttrs,
    Complex,
    DateTime,
    Decimal,
    ExternalReference,
    Integer,
    ScimReference,
    String,
    Unknown,
    UriReference,
)
from scimkit.data.filter import Filter
from scimkit.data.identifiers import (
    AttrName,
    AttrRep,
    AttrRepFactory,
    BoundedAttrRep,
    SchemaUri,
)
from scimkit.data.patch import (
    PatchOperation,
    PatchOperations,
    PatchOperationType,
    ResourcePatcher,
    patch_resource,
)
from scimkit.data.path import PatchPath, ResolvedPath, resolve_path
from scimkit.data.schemas import ResourceSchema, SchemaExtension
from scimkit.data.scim_data import Missing, ScimData

__all__ = [
    "AttrName",
    "SchemaUri",
    "AttrRep",
    "BoundedAttrRep",
    "AttrRepFactory",
    "Attribute",
    "AttributeMutability",
    "AttributeReturn",
    "Attrs",
    "Binary",
    "Boolean",
    "BoundedAttrs",
    "Complex",
    "DateTime",
    "Decimal",
    "ExternalReference",
    "Integer",
    "ScimReference",
    "String",
    "Unknown",
    "UriReference",
    "ResourceSchema",
    "SchemaExtension",
    "Filter",
    "PatchPath",
    "ResolvedPath",
    "resolve_path",
    "PatchOperation",
    "PatchOperations",
    "PatchOperationType",
    "ResourcePatcher",
    "patch_resource",
    "ScimData",
    "Missing",
]
