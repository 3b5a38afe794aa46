import pytest

from scimkit.data.attrs import String
from scimkit.data.identifiers import AttrName, AttrRep, SchemaUri
from scimkit.data.path import PatchPath, resolve_path
from scimkit.data.schemas import ResourceSchema, SchemaExtension
from scimkit.error import InvalidPathError

ENTERPRISE = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"


class ClearanceExtension(SchemaExtension):
    schema = "urn:scimkit:tests:extension:Clearance"
    name = "Clearance"
    base_attrs = [String("level"), String("nickName")]


class BadgeExtension(SchemaExtension):
    schema = "urn:scimkit:tests:extension:Badge"
    name = "Badge"
    base_attrs = [String("level"), String("color")]


class EmployeeSchema(ResourceSchema):
    schema = "urn:scimkit:tests:Employee"
    name = "Employee"
    plural_name = "Employees"
    base_attrs = [String("nickName")]


@pytest.fixture(scope="module")
def employee_schema():
    schema = EmployeeSchema()
    schema.extend(ClearanceExtension())
    schema.extend(BadgeExtension())
    return schema


@pytest.mark.parametrize(
    ("path", "expected"),
    (
        ("userName", "PatchPath(userName)"),
        ("name.givenName", "PatchPath(name.givenName)"),
        ('emails[type eq "work"]', 'PatchPath(emails[type eq "work"])'),
        ('emails[type eq "work"].value', 'PatchPath(emails[type eq "work"].value)'),
        (
            'members[value eq "2819c223" and display co "Babs"].display',
            'PatchPath(members[value eq "2819c223" and display co "Babs"].display)',
        ),
        (ENTERPRISE, f"PatchPath({ENTERPRISE})"),
        (f"{ENTERPRISE}:manager.value", f"PatchPath({ENTERPRISE}:manager.value)"),
    ),
)
def test_patch_path_is_deserialized(path, expected):
    assert repr(PatchPath.deserialize(path)) == expected


@pytest.mark.parametrize(
    "path",
    (
        "bad^attr",
        "emails[",
        "emails]",
        'emails[type eq "work"',
        "emails[]",
        'emails.type[value eq "x"]',
        'emails[type eq "work"]value',
        "emails[type eq]",
        "emails[type xx 1]",
    ),
)
def test_bad_patch_path_is_not_deserialized(path):
    assert PatchPath.validate(path).has_errors()

    with pytest.raises(ValueError, match="invalid path expression"):
        PatchPath.deserialize(path)


def test_patch_path_needs_attribute_or_extension():
    with pytest.raises(ValueError):
        PatchPath(attr_rep=None)

    with pytest.raises(ValueError):
        PatchPath(attr_rep=AttrRep(attr="name", sub_attr="givenName"))


def test_attribute_names_are_resolved_case_insensitively(user_schema):
    resolved = resolve_path('EMAILS[TYPE eq "work"].VALUE', user_schema)

    assert str(resolved.attr.name) == "emails"
    assert str(resolved.sub_attr_name) == "value"
    assert resolved.filter is not None
    assert resolved.has_child
    assert resolved.target is resolved.sub_attr


def test_path_is_resolved_to_base_schema_attribute(user_schema):
    resolved = resolve_path("name.familyName", user_schema)

    assert resolved.attr_rep.schema == SchemaUri("urn:ietf:params:scim:schemas:core:2.0:User")
    assert not resolved.attr_rep.extension
    assert resolved.sub_attr_name == AttrName("familyName")
    assert resolved.filter is None
    assert not resolved.is_extension


@pytest.mark.parametrize("path", ("employeeNumber", f"{ENTERPRISE}:employeeNumber"))
def test_path_is_resolved_to_extension_attribute(path, user_schema):
    resolved = resolve_path(path, user_schema)

    assert resolved.attr_rep.schema == SchemaUri(ENTERPRISE)
    assert resolved.attr_rep.extension
    assert str(resolved.attr.name) == "employeeNumber"


def test_path_is_resolved_to_extension_namespace(user_schema):
    resolved = resolve_path(ENTERPRISE.upper(), user_schema)

    assert resolved.is_extension
    assert resolved.extension == SchemaUri(ENTERPRISE)
    assert resolved.target is None


def test_unqualified_name_prefers_base_schema(employee_schema):
    resolved = resolve_path("nickName", employee_schema)

    assert resolved.attr_rep.schema == SchemaUri("urn:scimkit:tests:Employee")


def test_qualified_name_reaches_extension_attribute_shadowed_by_base_schema(employee_schema):
    resolved = resolve_path("urn:scimkit:tests:extension:Clearance:nickName", employee_schema)

    assert resolved.attr_rep.schema == SchemaUri("urn:scimkit:tests:extension:Clearance")


def test_name_defined_by_many_extensions_must_be_qualified(employee_schema):
    assert AttrName("level") in employee_schema.ambiguous_attrs

    with pytest.raises(InvalidPathError, match="ambiguous"):
        resolve_path("level", employee_schema)

    resolved = resolve_path("urn:scimkit:tests:extension:Badge:level", employee_schema)
    assert resolved.attr_rep.schema == SchemaUri("urn:scimkit:tests:extension:Badge")


@pytest.mark.parametrize(
    ("path", "message"),
    (
        ("unknown", "unknown attribute"),
        ("name.unknown", "unknown sub-attribute"),
        ("userName.value", "has no sub-attributes"),
        ('name[givenName eq "Barbara"]', "not multi-valued complex"),
        ('userName[value eq "bjensen"]', "not multi-valued complex"),
        ('emails[unknown eq "x"]', "in value selection filter"),
        ("urn:ietf:params:scim:schemas:core:2.0:Group", "has no extension"),
        (f"{ENTERPRISE}:unknown", "unknown attribute"),
        ("emails[", "bad path"),
    ),
)
def test_path_not_matching_schema_is_not_resolved(path, message, user_schema):
    with pytest.raises(InvalidPathError, match=message) as exc_info:
        resolve_path(path, user_schema)

    assert exc_info.value.status == 400
    assert exc_info.value.to_dict()["scimType"] == "invalidPath"
