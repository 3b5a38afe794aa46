from itertools import count

import pytest

from scimkit.bulk.processor import BulkOperationResult, BulkProcessor, BulkResult
from scimkit.config import ServiceProviderConfig
from scimkit.error import (
    BadRequestError,
    ConflictError,
    NotSupportedError,
    PayloadTooLargeError,
    ScimErrorType,
)

BULK_REQUEST = "urn:ietf:params:scim:api:messages:2.0:BulkRequest"
PATCH_OP = "urn:ietf:params:scim:api:messages:2.0:PatchOp"


class FakeStorage:
    def __init__(self, failing=()):
        self.calls = []
        self._failing = set(failing)
        self._ids = count(1)

    def __call__(self, method, path, data):
        self.calls.append((method, path, data))
        if (data or {}).get("userName") in self._failing:
            raise BadRequestError("userName is already taken", scim_type="uniqueness")
        if method == "POST":
            resource_id = f"id-{next(self._ids)}"
            return 201, {
                **data,
                "id": resource_id,
                "meta": {"location": f"https://example.com/v2{path}/{resource_id}"},
            }
        if method == "DELETE":
            return 204, None
        return 200, {**data, "id": path.split("/")[2]}


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def processor(storage, user_schema, group_schema):
    return BulkProcessor([user_schema, group_schema], executor=storage)


def _request(*operations, **kwargs):
    return {"schemas": [BULK_REQUEST], "Operations": list(operations), **kwargs}


def _create_user(bulk_id, user_name="bjensen"):
    return {
        "method": "POST",
        "path": "/Users",
        "bulkId": bulk_id,
        "data": {
            "schemas": ["urn:ietf:params:scim:schemas:core:2.0:User"],
            "userName": user_name,
        },
    }


def _create_group(bulk_id, *member_bulk_ids):
    return {
        "method": "POST",
        "path": "/Groups",
        "bulkId": bulk_id,
        "data": {
            "schemas": ["urn:ietf:params:scim:schemas:core:2.0:Group"],
            "displayName": f"Group {bulk_id}",
            "members": [
                {"type": "User", "value": f"bulkId:{member_bulk_id}"}
                for member_bulk_id in member_bulk_ids
            ],
        },
    }


def test_operations_without_references_are_executed_in_order(processor, storage):
    result = processor.process(
        _request(
            _create_user("1", "bjensen"),
            _create_user("2", "mpepperidge"),
            {"method": "DELETE", "path": "/Users/b7c14771-226c-4d05-8860-134711653041"},
        )
    )

    assert [call[:2] for call in storage.calls] == [
        ("POST", "/Users"),
        ("POST", "/Users"),
        ("DELETE", "/Users/b7c14771-226c-4d05-8860-134711653041"),
    ]
    assert result.completed
    assert result.errors == 0
    assert result.operations == [
        BulkOperationResult(
            method="POST",
            bulk_id="1",
            location="https://example.com/v2/Users/id-1",
            status=201,
        ),
        BulkOperationResult(
            method="POST",
            bulk_id="2",
            location="https://example.com/v2/Users/id-2",
            status=201,
        ),
        BulkOperationResult(
            method="DELETE",
            bulk_id=None,
            location="/Users/b7c14771-226c-4d05-8860-134711653041",
            status=204,
        ),
    ]


def test_forward_reference_is_resolved_before_operation_is_executed(processor, storage):
    result = processor.process(_request(_create_group("g", "u"), _create_user("u")))

    assert [call[:2] for call in storage.calls] == [("POST", "/Users"), ("POST", "/Groups")]
    assert storage.calls[1][2]["members"] == [{"type": "User", "value": "id-1"}]
    assert [operation.bulk_id for operation in result.operations] == ["u", "g"]
    assert result.errors == 0


def test_chain_of_references_is_resolved(processor, storage):
    result = processor.process(
        _request(_create_group("g1", "g2"), _create_group("g2", "u"), _create_user("u"))
    )

    assert [call[2].get("displayName") for call in storage.calls] == [None, "Group g2", "Group g1"]
    assert storage.calls[1][2]["members"][0]["value"] == "id-1"
    assert storage.calls[2][2]["members"][0]["value"] == "id-2"
    assert result.errors == 0


def test_reference_in_operation_path_is_resolved(processor, storage):
    result = processor.process(
        _request(
            {
                "method": "PATCH",
                "path": "/Groups/bulkId:g",
                "data": {
                    "schemas": [PATCH_OP],
                    "Operations": [
                        {"op": "add", "path": "members", "value": [{"value": "bulkId:u"}]}
                    ],
                },
            },
            _create_group("g"),
            _create_user("u"),
        )
    )

    method, path, data = storage.calls[-1]
    assert (method, path) == ("PATCH", "/Groups/id-1")
    assert data["Operations"][0]["value"] == [{"value": "id-2"}]
    assert result.operations[-1] == BulkOperationResult(
        method="PATCH", bulk_id=None, location="/Groups/id-1", status=200
    )


def test_failed_operation_is_reported_and_processing_continues(user_schema, group_schema):
    storage = FakeStorage(failing={"bjensen"})
    processor = BulkProcessor([user_schema, group_schema], executor=storage)

    result = processor.process(
        _request(_create_user("1", "bjensen"), _create_user("2", "mpepperidge"))
    )

    assert result.completed
    assert result.errors == 1
    assert result.operations[0].to_dict() == {
        "method": "POST",
        "bulkId": "1",
        "status": "400",
        "response": {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:Error"],
            "status": "400",
            "detail": "userName is already taken",
            "scimType": "uniqueness",
        },
    }
    assert result.operations[1].status == 201


def test_operation_referencing_failed_operation_fails_with_conflict(user_schema, group_schema):
    storage = FakeStorage(failing={"bjensen"})
    processor = BulkProcessor([user_schema, group_schema], executor=storage)

    result = processor.process(_request(_create_group("g", "u"), _create_user("u", "bjensen")))

    assert [call[:2] for call in storage.calls] == [("POST", "/Users")]
    assert result.errors == 2
    assert [(operation.bulk_id, operation.status) for operation in result.operations] == [
        ("u", 400),
        ("g", 409),
    ]
    assert result.operations[1].response["status"] == "409"


def test_processing_stops_when_too_many_errors(user_schema, group_schema):
    storage = FakeStorage(failing={"bjensen", "mpepperidge"})
    processor = BulkProcessor([user_schema, group_schema], executor=storage)

    result = processor.process(
        _request(
            _create_user("1", "bjensen"),
            _create_user("2", "mpepperidge"),
            _create_user("3", "akarenina"),
            failOnErrors=2,
        )
    )

    assert not result.completed
    assert result.errors == 2
    assert len(result.operations) == 2
    assert len(storage.calls) == 2


def test_bulk_result_is_serialized(processor):
    result = processor.process(_request(_create_user("1")))

    assert result.to_dict() == {
        "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkResponse"],
        "Operations": [
            {
                "method": "POST",
                "bulkId": "1",
                "location": "https://example.com/v2/Users/id-1",
                "status": "201",
            }
        ],
    }


def test_empty_bulk_result_is_serialized():
    assert BulkResult().to_dict() == {
        "schemas": ["urn:ietf:params:scim:api:messages:2.0:BulkResponse"],
        "Operations": [],
    }


def test_reference_to_undeclared_bulk_id_rejects_request(processor, storage):
    with pytest.raises(BadRequestError, match="no operation declares") as exc_info:
        processor.process(_request(_create_user("u"), _create_group("g", "unknown")))

    assert exc_info.value.context == {"bulk_ids": ["unknown"]}
    assert storage.calls == []


def test_circular_reference_rejects_request(processor, storage):
    with pytest.raises(ConflictError):
        processor.process(_request(_create_group("g1", "g2"), _create_group("g2", "g1")))

    assert storage.calls == []


def test_self_reference_rejects_request(processor, storage):
    with pytest.raises(BadRequestError, match="self-reference"):
        processor.process(_request(_create_group("g", "g")))

    assert storage.calls == []


@pytest.mark.parametrize(
    ("request_data", "message"),
    (
        ({"Operations": [_create_user("1")]}, "schemas"),
        ({"schemas": [BULK_REQUEST]}, "Operations"),
        (_request({"method": "POST", "path": "/Users", "data": {}}), "Operations.0.bulkId"),
        (_request({"method": "POST", "path": "/Unknown", "bulkId": "1", "data": {}}), "path"),
        (_request({"method": "DELETE", "path": "/Users"}), "Operations.0.path"),
        (_request(_create_user("1"), failOnErrors=0), "failOnErrors"),
    ),
)
def test_malformed_bulk_request_is_rejected(request_data, message, processor, storage):
    with pytest.raises(BadRequestError, match=message):
        processor.process(request_data)

    assert storage.calls == []


def test_too_many_operations_are_rejected(processor):
    operations = [_create_user(str(i), f"user{i}") for i in range(11)]

    with pytest.raises(BadRequestError) as exc_info:
        processor.process(_request(*operations))

    assert exc_info.value.scim_type == ScimErrorType.TOO_MANY
    assert exc_info.value.to_dict()["scimType"] == "tooMany"


def test_processor_uses_provided_config(storage, user_schema):
    config = ServiceProviderConfig.create(
        bulk={"max_operations": 1, "max_payload_size": 1024, "supported": True},
    )
    processor = BulkProcessor([user_schema], executor=storage, config=config)

    assert processor.config is config
    with pytest.raises(BadRequestError):
        processor.process(_request(_create_user("1"), _create_user("2", "mpepperidge")))


def test_bulk_request_is_rejected_if_bulk_operations_are_not_supported(storage, user_schema):
    processor = BulkProcessor(
        [user_schema], executor=storage, config=ServiceProviderConfig.create()
    )

    with pytest.raises(NotSupportedError) as exc_info:
        processor.process(_request(_create_user("1")))

    assert exc_info.value.to_dict()["status"] == "501"
    assert storage.calls == []


def test_too_large_bulk_request_is_rejected(storage, user_schema):
    config = ServiceProviderConfig.create(
        bulk={"max_operations": 10, "max_payload_size": 100, "supported": True},
    )
    processor = BulkProcessor([user_schema], executor=storage, config=config)

    with pytest.raises(PayloadTooLargeError) as exc_info:
        processor.process(_request(_create_user("1")))

    assert exc_info.value.status == 413
    assert exc_info.value.context == {"max_payload_size": 100}
    assert storage.calls == []


def test_created_resource_without_id_fails_and_dependent_operations_conflict(
    user_schema, group_schema
):
    calls = []

    def executor(method, path, data):
        calls.append((method, path, data))
        return 201, {"userName": data.get("userName")}

    processor = BulkProcessor([user_schema, group_schema], executor=executor)

    result = processor.process(_request(_create_user("u"), _create_group("g", "u")))

    assert [call[:2] for call in calls] == [("POST", "/Users")]
    assert result.errors == 2
    assert [(operation.bulk_id, operation.status) for operation in result.operations] == [
        ("u", 500),
        ("g", 409),
    ]
    assert result.operations[0].location is None
    assert result.operations[0].response["detail"] == "created resource has no id"
