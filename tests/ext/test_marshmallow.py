import marshmallow
import pytest

from scimkit.bulk import BulkProcessor
from scimkit.data.patch import PatchOperations, PatchOperationType, patch_resource
from scimkit.data.scim_data import ScimData
from scimkit.ext.marshmallow import (
    create_bulk_request_schema,
    create_patch_op_schema,
    initialize,
)

PATCH_OP = "urn:ietf:params:scim:api:messages:2.0:PatchOp"
BULK_REQUEST = "urn:ietf:params:scim:api:messages:2.0:BulkRequest"


@pytest.fixture(scope="session", autouse=True)
def initialize_marshmallow():
    initialize()


@pytest.fixture
def user_patch_serialized():
    return {
        "schemas": [PATCH_OP],
        "Operations": [
            {
                "op": "add",
                "path": "emails",
                "value": [{"value": "babs@example.com", "type": "other"}],
            },
            {"op": "replace", "path": 'emails[type eq "work"].value', "value": "bj@example.com"},
            {"op": "remove", "path": "nickName"},
            {"op": "replace", "value": {"displayName": "Barbara Jensen"}},
        ],
    }


@pytest.fixture
def bulk_request_serialized():
    return {
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
                "path": "/Groups/e9e30dba-f08f-4109-8486-d5c6a331660a",
                "data": {
                    "schemas": [PATCH_OP],
                    "Operations": [
                        {"op": "add", "path": "members", "value": [{"value": "bulkId:qwerty"}]}
                    ],
                },
            },
        ],
    }


def test_initialization_can_not_be_repeated():
    with pytest.raises(RuntimeError, match="already initialized"):
        initialize()


def test_patch_request_can_be_loaded(user_patch_serialized, user_schema):
    schema = create_patch_op_schema(user_schema)()

    operations = schema.load(user_patch_serialized)

    assert isinstance(operations, PatchOperations)
    assert [operation.type for operation in operations] == [
        PatchOperationType.ADD,
        PatchOperationType.REPLACE,
        PatchOperationType.REMOVE,
        PatchOperationType.REPLACE,
    ]
    assert operations[1].path.serialize() == 'emails[type eq "work"].value'


def test_loaded_patch_request_can_be_applied(user_patch_serialized, user_data, user_schema):
    operations = create_patch_op_schema(user_schema)().load(user_patch_serialized)

    patch_resource(user_data, operations, user_schema)

    assert [email["value"] for email in user_data["emails"]] == [
        "bj@example.com",
        "babs@jensen.org",
        "babs@example.com",
    ]
    assert "nickName" not in user_data
    assert user_data["displayName"] == "Barbara Jensen"


def test_attr_names_are_case_insensitive_when_loading_patch_request(user_schema):
    schema = create_patch_op_schema(user_schema)()

    operations = schema.load(
        {
            "SCHEMAS": [PATCH_OP],
            "operations": [{"OP": "Remove", "Path": "nickName"}],
        }
    )

    assert operations[0].type == PatchOperationType.REMOVE
    assert operations[0].path.serialize() == "nickName"


def test_patch_request_loading_fails_if_validation_error(user_schema):
    schema = create_patch_op_schema(user_schema)()

    with pytest.raises(marshmallow.ValidationError) as exc_info:
        schema.load(
            {
                "schemas": [PATCH_OP],
                "Operations": [
                    {"op": "add", "path": "nickName", "value": "Babs"},
                    {"op": "terminate", "path": "nickName"},
                    {"op": "remove", "path": "userName"},
                ],
            }
        )

    messages = exc_info.value.messages
    assert set(messages["Operations"]) == {"1", "2"}
    assert len(messages["Operations"]["1"]["op"]) == 1
    assert messages["Operations"]["2"]["path"] == ["attribute can not be deleted"]


def test_patch_request_can_be_dumped(user_patch_serialized, user_schema):
    schema = create_patch_op_schema(user_schema)()
    operations = schema.load(user_patch_serialized)

    assert schema.dump(operations) == user_patch_serialized


def test_bulk_request_can_be_loaded(bulk_request_serialized, user_schema, group_schema):
    schema = create_bulk_request_schema([user_schema, group_schema])()

    data = schema.load(bulk_request_serialized)

    assert isinstance(data, ScimData)
    assert data.to_dict() == bulk_request_serialized


def test_loaded_bulk_request_can_be_processed(bulk_request_serialized, user_schema, group_schema):
    calls = []

    def executor(method, path, data):
        calls.append((method, path, data))
        if method == "POST":
            return 201, {**data, "id": "2819c223"}
        return 200, None

    data = create_bulk_request_schema([user_schema, group_schema])().load(bulk_request_serialized)
    result = BulkProcessor([user_schema, group_schema], executor=executor).process(data)

    assert result.errors == 0
    assert calls[1][2]["Operations"][0]["value"] == [{"value": "2819c223"}]


def test_bulk_request_loading_fails_if_patch_data_is_invalid(
    bulk_request_serialized, user_schema, group_schema
):
    bulk_request_serialized["Operations"][1]["data"]["Operations"][0]["path"] = "unknown"
    schema = create_bulk_request_schema([user_schema, group_schema])()

    with pytest.raises(marshmallow.ValidationError) as exc_info:
        schema.load(bulk_request_serialized)

    assert exc_info.value.messages == {
        "Operations": {
            "1": {"data": {"Operations": {"0": {"path": ["unknown modification target"]}}}}
        }
    }


def test_bulk_request_loading_fails_if_too_many_operations(
    bulk_request_serialized, user_schema, group_schema
):
    bulk_request_serialized["Operations"] *= 6
    schema = create_bulk_request_schema([user_schema, group_schema])()

    with pytest.raises(marshmallow.ValidationError) as exc_info:
        schema.load(bulk_request_serialized)

    assert exc_info.value.messages == {"Operations": ["too many operations in bulk (max 10)"]}


def test_bulk_request_can_be_dumped(bulk_request_serialized, user_schema, group_schema):
    schema = create_bulk_request_schema([user_schema, group_schema])()

    assert schema.dump(ScimData(bulk_request_serialized)) == bulk_request_serialized
