import pytest

from scimkit.data.identifiers import (
    AttrName,
    AttrRep,
    AttrRepFactory,
    BoundedAttrRep,
    SchemaUri,
    is_registered_schema_uri,
)

USER = "urn:ietf:params:scim:schemas:core:2.0:User"
ENTERPRISE = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"


@pytest.mark.parametrize("value", ("userName", "$ref", "x509Certificates", "bulk_id", "a-b"))
def test_attr_name_is_created(value):
    assert AttrName(value) == value.upper()


@pytest.mark.parametrize("value", ("", "1name", "user name", "name.givenName", "$value"))
def test_bad_attr_name_is_rejected(value):
    with pytest.raises(ValueError, match="not valid attr name"):
        AttrName(value)


def test_attr_names_are_case_insensitive():
    assert AttrName("userName") == AttrName("USERNAME")
    assert hash(AttrName("userName")) == hash(AttrName("username"))
    assert {AttrName("userName"): 1}.get(AttrName("USERNAME")) == 1
    assert str(AttrName("userName")) == "userName"


def test_schema_uris_are_case_insensitive():
    assert SchemaUri(USER) == USER.upper()
    assert hash(SchemaUri(USER)) == hash(SchemaUri(USER.lower()))


def test_bad_schema_uri_is_rejected():
    with pytest.raises(ValueError, match="not a valid schema URI"):
        SchemaUri("urn:bad uri")


@pytest.mark.parametrize(
    ("value", "expected"),
    ((USER, True), (ENTERPRISE.upper(), True), ("urn:unknown:Schema", False), ("bad uri", False)),
)
def test_registered_schema_uri_is_recognized(value, expected):
    assert is_registered_schema_uri(value) is expected


def test_attr_rep_properties():
    attr_rep = AttrRep(attr="name", sub_attr="givenName")

    assert attr_rep.attr == "NAME"
    assert attr_rep.sub_attr == "givenname"
    assert attr_rep.is_sub_attr
    assert attr_rep.location == ("name", "givenName")
    assert str(attr_rep) == "name.givenName"
    assert repr(attr_rep) == "AttrRep(name.givenName)"


def test_top_level_attr_rep_has_no_sub_attr():
    attr_rep = AttrRep(attr="userName")

    assert not attr_rep.is_sub_attr
    with pytest.raises(AttributeError):
        attr_rep.sub_attr


@pytest.mark.parametrize(
    ("attr_rep_1", "attr_rep_2", "expected"),
    (
        (AttrRep(attr="userName"), AttrRep(attr="USERNAME"), True),
        (AttrRep(attr="name", sub_attr="givenName"), AttrRep(attr="name"), False),
        (BoundedAttrRep(schema=USER, attr="userName"), AttrRep(attr="userName"), True),
        (
            BoundedAttrRep(schema=USER, attr="userName"),
            BoundedAttrRep(schema=USER.lower(), attr="username"),
            True,
        ),
        (
            BoundedAttrRep(schema=ENTERPRISE, attr="manager"),
            BoundedAttrRep(schema=USER, attr="manager"),
            False,
        ),
        (AttrRep(attr="userName"), "userName", False),
    ),
)
def test_attr_reps_are_compared(attr_rep_1, attr_rep_2, expected):
    assert (attr_rep_1 == attr_rep_2) is expected


def test_bounded_attr_rep_properties():
    attr_rep = BoundedAttrRep(schema=ENTERPRISE, attr="manager", sub_attr="value")

    assert attr_rep.schema == ENTERPRISE
    assert attr_rep.extension
    assert attr_rep.location == (ENTERPRISE, "manager", "value")
    assert str(attr_rep) == f"{ENTERPRISE}:manager.value"
    assert attr_rep.parent() == BoundedAttrRep(schema=ENTERPRISE, attr="manager")
    assert not BoundedAttrRep(schema=USER, attr="userName").extension


def test_bounded_attr_rep_requires_registered_schema():
    with pytest.raises(ValueError, match="unknown schema"):
        BoundedAttrRep(schema="urn:unknown:Schema", attr="userName")


@pytest.mark.parametrize(
    ("value", "expected"),
    (
        ("userName", AttrRep(attr="userName")),
        ("name.givenName", AttrRep(attr="name", sub_attr="givenName")),
        ("members.$ref", AttrRep(attr="members", sub_attr="$ref")),
        (f"{USER}:userName", BoundedAttrRep(schema=USER, attr="userName")),
        (
            f"{ENTERPRISE}:manager.displayName",
            BoundedAttrRep(schema=ENTERPRISE, attr="manager", sub_attr="displayName"),
        ),
    ),
)
def test_attr_rep_is_deserialized(value, expected):
    assert AttrRepFactory.validate(value).to_dict() == {}
    assert AttrRepFactory.deserialize(value) == expected


@pytest.mark.parametrize(
    "value",
    ("bad^attr", "name.givenName.first", "urn:unknown:Schema:userName", "", "1userName"),
)
def test_bad_attr_rep_is_not_deserialized(value):
    assert AttrRepFactory.validate(value).to_dict() == {"_errors": [{"code": 17}]}

    with pytest.raises(ValueError):
        AttrRepFactory.deserialize(value)
