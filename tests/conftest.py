from copy import deepcopy

import pytest

from scimkit import registry
from scimkit.config import ServiceProviderConfig
from scimkit.data.attrs import (
    AttributeMutability,
    Boolean,
    Complex,
    DateTime,
    Decimal,
    Integer,
    ScimReference,
    String,
)
from scimkit.data.schemas import ResourceSchema
from scimkit.schemas import EnterpriseUserSchemaExtension, GroupSchema, UserSchema


class FakeSchema(ResourceSchema):
    schema = "schema:for:tests"
    name = "FakeSchema"
    plural_name = "SchemasForTests"
    endpoint = "/SchemasForTests"
    base_attrs = [
        String("string"),
        Integer("int"),
        Decimal("decimal"),
        Boolean("bool"),
        DateTime("datetime"),
        String("str_mv", multi_valued=True),
        String("immutable", mutability=AttributeMutability.IMMUTABLE),
        ScimReference("scim_ref", reference_types=["FakeSchema"]),
        ScimReference("scim_ref_mv", reference_types=["FakeSchema"], multi_valued=True),
        Complex(
            "c",
            sub_attributes=[String("str"), Integer("int"), Boolean("bool")],
        ),
        Complex(
            "c_mv",
            multi_valued=True,
            sub_attributes=[
                String("value"),
                String("type"),
                Boolean("primary"),
                String("fixed", mutability=AttributeMutability.IMMUTABLE),
            ],
        ),
    ]


_user_schema = UserSchema()
_group_schema = GroupSchema()
_enterprise_extension = EnterpriseUserSchemaExtension()
_fake_schema = FakeSchema()


@pytest.fixture(scope="session")
def user_schema() -> UserSchema:
    return _user_schema


@pytest.fixture(scope="session")
def group_schema() -> GroupSchema:
    return _group_schema


@pytest.fixture(scope="session")
def enterprise_extension() -> EnterpriseUserSchemaExtension:
    return _enterprise_extension


@pytest.fixture(scope="session")
def fake_schema() -> FakeSchema:
    return _fake_schema


def pytest_sessionstart(session):
    _user_schema.extend(_enterprise_extension, required=False)


@pytest.fixture(scope="session", autouse=True)
def set_service_provider_config():
    registry.set_service_provider_config(
        ServiceProviderConfig.create(
            patch={"supported": True},
            bulk={"max_operations": 10, "max_payload_size": 4242, "supported": True},
        )
    )


_USER_DATA = {
    "schemas": [
        "urn:ietf:params:scim:schemas:core:2.0:User",
        "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User",
    ],
    "id": "2819c223-7f76-453a-919d-413861904646",
    "externalId": "1",
    "userName": "bjensen@example.com",
    "name": {
        "formatted": "Ms. Barbara J Jensen, III",
        "familyName": "Jensen",
        "givenName": "Barbara",
    },
    "displayName": "Babs Jensen",
    "nickName": "Babs",
    "emails": [
        {"value": "bjensen@example.com", "type": "work", "primary": True},
        {"value": "babs@jensen.org", "type": "home"},
    ],
    "phoneNumbers": [
        {"value": "+1 555-555-5555", "type": "work"},
        {"value": "+1 555-555-4444", "type": "mobile"},
    ],
    "groups": [
        {
            "value": "e9e30dba-f08f-4109-8486-d5c6a331660a",
            "$ref": "https://example.com/v2/Groups/e9e30dba-f08f-4109-8486-d5c6a331660a",
            "display": "Tour Guides",
        }
    ],
    "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User": {
        "employeeNumber": "701984",
        "costCenter": "4130",
        "manager": {
            "value": "26118915-6090-4610-87e4-49d8ca9f808d",
            "$ref": "../Users/26118915-6090-4610-87e4-49d8ca9f808d",
            "displayName": "John Smith",
        },
    },
    "meta": {
        "resourceType": "User",
        "created": "2010-01-23T04:56:22Z",
        "lastModified": "2011-05-13T04:42:34Z",
        "version": 'W/"3694e05e9dff591"',
        "location": "https://example.com/v2/Users/2819c223-7f76-453a-919d-413861904646",
    },
}


_GROUP_DATA = {
    "schemas": ["urn:ietf:params:scim:schemas:core:2.0:Group"],
    "id": "e9e30dba-f08f-4109-8486-d5c6a331660a",
    "displayName": "Tour Guides",
    "members": [
        {
            "value": "2819c223-7f76-453a-919d-413861904646",
            "$ref": "https://example.com/v2/Users/2819c223-7f76-453a-919d-413861904646",
            "display": "Babs Jensen",
            "type": "User",
        },
        {
            "value": "902c246b-6245-4190-8e05-00816be7344a",
            "$ref": "https://example.com/v2/Users/902c246b-6245-4190-8e05-00816be7344a",
            "display": "Mandy Pepperidge",
            "type": "User",
        },
    ],
    "meta": {
        "resourceType": "Group",
        "created": "2010-01-23T04:56:22Z",
        "lastModified": "2011-05-13T04:42:34Z",
        "version": 'W/"3694e05e9dff592"',
        "location": "https://example.com/v2/Groups/e9e30dba-f08f-4109-8486-d5c6a331660a",
    },
}


@pytest.fixture
def user_data():
    return deepcopy(_USER_DATA)


@pytest.fixture
def group_data():
    return deepcopy(_GROUP_DATA)
