import pytest

from scimkit.config import ServiceProviderConfig
from scimkit.data.scim_data import ScimData
from scimkit.schemas.bulk_ops import BulkRequestSchema

BULK_REQUEST = "urn:ietf:params:scim:api:messages:2.0:BulkRequest"


@pytest.fixture
def bulk_request_schema(user_schema, group_schema):
    return BulkRequestSchema([user_schema, group_schema])


@pytest.mark.parametrize(
    ("operation", "expected_issues"),
    (
        ({"path": "/Users"}, {"0": {"method": {"_errors": [{"code": 5}]}}}),
        (
            {"method": "TERMINATE", "path": "/Users/2819c223"},
            {"0": {"method": {"_errors": [{"code": 9}]}}},
        ),
        (
            {"method": "POST", "data": {"userName": "bjensen"}, "path": "/Users"},
            {"0": {"bulkId": {"_errors": [{"code": 5}]}}},
        ),
        (
            {"method": "POST", "bulkId": "qwerty", "path": "/Users"},
            {"0": {"data": {"_errors": [{"code": 5}]}}},
        ),
        (
            {"method": "PATCH", "path": "/Users/2819c223"},
            {"0": {"data": {"_errors": [{"code": 5}]}}},
        ),
        (
            {"method": "PUT", "path": "/Users/2819c223"},
            {"0": {"data": {"_errors": [{"code": 5}]}}},
        ),
        ({"method": "DELETE"}, {"0": {"path": {"_errors": [{"code": 5}]}}}),
        (
            {"method": "DELETE", "path": "/Users"},
            {"0": {"path": {"_errors": [{"code": 1}]}}},
        ),
        (
            {"method": "POST", "bulkId": "qwerty", "path": "/Users/2819c223", "data": {}},
            {"0": {"path": {"_errors": [{"code": 1}]}}},
        ),
        ({"method": "delete", "path": "/Users/2819c223"}, {}),
        ({"method": "POST", "bulkId": "qwerty", "path": "/Users", "data": {}}, {}),
    ),
)
def test_bulk_request_operation_is_validated(operation, expected_issues, bulk_request_schema):
    issues = bulk_request_schema.attrs.get("Operations").validate([ScimData(operation)])

    assert issues.to_dict() == expected_issues


def test_correct_bulk_request_is_validated(bulk_request_schema):
    data = {
        "schemas": [BULK_REQUEST],
        "failOnErrors": 1,
        "Operations": [
            {
                "method": "POST",
                "path": "/Users",
                "bulkId": "qwerty",
                "data": {
                    "schemas": ["urn:ietf:params:scim:schemas:core:2.0:User"],
                    "userName": "Alice",
                },
            },
            {
                "method": "PATCH",
                "path": "/groups/e9e30dba-f08f-4109-8486-d5c6a331660a",
                "data": {
                    "schemas": ["urn:ietf:params:scim:api:messages:2.0:PatchOp"],
                    "Operations": [
                        {"op": "add", "path": "members", "value": [{"value": "bulkId:qwerty"}]}
                    ],
                },
            },
            {"method": "DELETE", "path": "/Users/b7c14771-226c-4d05-8860-134711653041"},
        ],
    }

    assert bulk_request_schema.validate(data).to_dict() == {}


@pytest.mark.parametrize(
    ("data", "expected_issues"),
    (
        ({"schemas": [BULK_REQUEST]}, {"Operations": {"_errors": [{"code": 5}]}}),
        ({"Operations": []}, {"schemas": {"_errors": [{"code": 5}]}}),
        (
            {"schemas": ["urn:ietf:params:scim:api:messages:2.0:PatchOp"], "Operations": []},
            {"schemas": {"_errors": [{"code": 9}]}},
        ),
        (
            {"schemas": [BULK_REQUEST], "failOnErrors": 0, "Operations": []},
            {"failOnErrors": {"_errors": [{"code": 4}]}},
        ),
        (
            {"schemas": [BULK_REQUEST], "failOnErrors": "1", "Operations": []},
            {"failOnErrors": {"_errors": [{"code": 2}]}},
        ),
        (
            {
                "schemas": [BULK_REQUEST],
                "Operations": [
                    {"method": "DELETE", "path": "/Users/2819c223"},
                    {"method": "DELETE", "path": "/Unknown/2819c223"},
                ],
            },
            {"Operations": {"1": {"path": {"_errors": [{"code": 25}]}}}},
        ),
    ),
)
def test_bad_bulk_request_is_validated(data, expected_issues, bulk_request_schema):
    assert bulk_request_schema.validate(data).to_dict() == expected_issues


def test_too_many_operations_are_reported(bulk_request_schema):
    data = {
        "schemas": [BULK_REQUEST],
        "Operations": [{"method": "DELETE", "path": f"/Users/{i}"} for i in range(11)],
    }

    issues = bulk_request_schema.validate(data)

    assert issues.to_dict(ctx=True) == {
        "Operations": {"_errors": [{"code": 26, "context": {"max": 10}}]}
    }


def test_provided_config_overrides_global_one(user_schema):
    schema = BulkRequestSchema(
        [user_schema],
        config=ServiceProviderConfig.create(
            bulk={"max_operations": 1, "max_payload_size": 1024, "supported": True}
        ),
    )
    data = {
        "schemas": [BULK_REQUEST],
        "Operations": [{"method": "DELETE", "path": f"/Users/{i}"} for i in range(2)],
    }

    assert schema.validate(data).to_dict() == {"Operations": {"_errors": [{"code": 26}]}}


@pytest.mark.parametrize(
    ("path", "expected"),
    (
        ("/Users", "user_schema"),
        ("/users/2819c223", "user_schema"),
        ("/Groups/bulkId:qwerty", "group_schema"),
        ("/Unknown", None),
        ("Users", None),
        (None, None),
    ),
)
def test_resource_schema_is_matched_by_operation_path(
    path, expected, bulk_request_schema, request
):
    expected_schema = request.getfixturevalue(expected) if expected else None

    assert bulk_request_schema.get_resource_schema({"path": path}) is expected_schema
