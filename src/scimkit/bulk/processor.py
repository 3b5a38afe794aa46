import json
import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional

from scimkit import registry
from scimkit.bulk.resolver import BulkIdResolver, OperationReferences
from scimkit.config import ServiceProviderConfig
from scimkit.data.schemas import ResourceSchema
from scimkit.data.scim_data import Missing, ScimData
from scimkit.error import (
    BadRequestError,
    ConflictError,
    InternalServerError,
    NotSupportedError,
    PayloadTooLargeError,
    ScimError,
)
from scimkit.schemas.bulk_ops import BulkRequestSchema

logger = logging.getLogger(__name__)

BULK_RESPONSE_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:BulkResponse"

OperationExecutor = Callable[[str, str, Optional[dict[str, Any]]], tuple[int, Optional[Mapping]]]
"""
Executes single bulk operation against the storage. Receives the method, the path and
the data, with all bulkId references replaced, and returns HTTP status and the resulting
resource (if any). Failures are reported by raising `ScimError`.
"""


@dataclass
class BulkOperationResult:
    method: str
    bulk_id: Optional[str]
    location: Optional[str]
    status: int
    response: Optional[dict[str, Any]] = None

    def to_dict(self) -> dict[str, Any]:
        output: dict[str, Any] = {"method": self.method}
        if self.bulk_id is not None:
            output["bulkId"] = self.bulk_id
        if self.location is not None:
            output["location"] = self.location
        output["status"] = str(self.status)
        if self.response is not None:
            output["response"] = self.response
        return output


@dataclass
class BulkResult:
    """
    Outcome of the bulk request. `completed` is `False` if processing stopped early, because
    the number of errors reached `failOnErrors`.
    """

    operations: list[BulkOperationResult] = field(default_factory=list)
    errors: int = 0
    completed: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemas": [BULK_RESPONSE_SCHEMA],
            "Operations": [operation.to_dict() for operation in self.operations],
        }


class BulkProcessor:
    """
    Processes bulk requests, as specified in
    [RFC-7644, section 3.7](https://www.rfc-editor.org/rfc/rfc7644#section-3.7).

    All operations are registered before any of them is executed, so self-references, circular
    references and references to bulkIds that no operation declares reject the whole request.
    Operations are then executed in the order they were sent in. Operations that still
    reference resources not created yet are put back at the end of the queue, until
    the referenced resources are created, or the referenced operations fail.

    Args:
        resource_schemas: Schemas of resources that can be processed.
        executor: Callable executing single operation, see `OperationExecutor`.
        config: Service provider configuration. If not provided, the globally set one is used.
    """

    def __init__(
        self,
        resource_schemas: Iterable[ResourceSchema],
        executor: OperationExecutor,
        config: Optional[ServiceProviderConfig] = None,
    ):
        self._resource_schemas = list(resource_schemas)
        self._executor = executor
        self._config = config
        self._request_schema = BulkRequestSchema(self._resource_schemas, config=config)

    @property
    def config(self) -> ServiceProviderConfig:
        return self._config or registry.service_provider_config

    def process(self, data: Mapping[str, Any]) -> BulkResult:
        """
        Processes the BulkRequest `data`.

        Raises:
            BadRequestError: If the request is malformed, or any of operations has malformed
                bulkId reference, or references itself, or references bulkId that is not
                declared in the request.
            ConflictError: If operations reference each other in a circle.
            NotSupportedError: If bulk requests are disabled in the configuration.
            PayloadTooLargeError: If the request exceeds the maximum payload size.
        """
        data = ScimData(data)
        self._check_limits(data)
        issues = self._request_schema.validate(data)
        if (first := issues.first_error()) is not None:
            location, error = first
            raise BadRequestError(
                f"bad bulk request, {'.'.join(map(str, location))}: {error.message}",
                scim_type=error.scim_error,
                issues=issues.to_dict(msg=True),
            )

        resolver = BulkIdResolver(self._resource_schemas)
        operations = [
            resolver.create_resolver(
                bulk_id=operation.get("bulkId") or None,
                path=operation.get("path"),
                data=operation.get("data") or None,
                method=operation.get("method"),
            )
            for operation in data.get("Operations")
        ]
        self._check_undeclared(operations)

        fail_on_errors = data.get("failOnErrors")
        if fail_on_errors is Missing:
            fail_on_errors = None
        result = self._execute(resolver, operations, fail_on_errors)
        logger.info(
            "Processed bulk request: %d of %d operation(s) done, %d error(s)",
            len(result.operations),
            len(operations),
            result.errors,
        )
        return result

    def _check_limits(self, data: ScimData) -> None:
        bulk = self.config.bulk
        if not bulk.supported:
            raise NotSupportedError("bulk operations are not supported")
        size = len(json.dumps(data.to_dict(), default=str).encode())
        if bulk.max_payload_size is not None and size > bulk.max_payload_size:
            raise PayloadTooLargeError(
                f"bulk request payload has {size} bytes, "
                f"maximum is {bulk.max_payload_size} bytes",
                max_payload_size=bulk.max_payload_size,
            )

    @staticmethod
    def _check_undeclared(operations: list[OperationReferences]) -> None:
        declared = {operation.bulk_id for operation in operations if operation.bulk_id}
        for operation in operations:
            undeclared = operation.referenced_bulk_ids - declared
            if undeclared:
                raise BadRequestError(
                    f"operation {operation.bulk_id or operation.path!r} references bulkIds "
                    f"{sorted(undeclared)} that no operation declares",
                    bulk_ids=sorted(undeclared),
                )

    def _execute(
        self,
        resolver: BulkIdResolver,
        operations: list[OperationReferences],
        fail_on_errors: Optional[int],
    ) -> BulkResult:
        result = BulkResult()
        failed: set[str] = set()
        queue = deque(operations)
        max_rounds = 2 * (self.config.bulk.max_operations or len(operations))

        for _ in range(max_rounds):
            progressed = False
            for _ in range(len(queue)):
                if fail_on_errors is not None and result.errors >= fail_on_errors:
                    logger.debug("Stopping bulk processing after %d error(s)", result.errors)
                    result.completed = False
                    return result
                operation = queue.popleft()
                if not operation.has_unresolved:
                    self._run(resolver, operation, result, failed)
                    progressed = True
                    continue
                failed_references = operation.referenced_bulk_ids & failed
                if failed_references:
                    error = ConflictError(
                        f"referenced operations {sorted(failed_references)} failed",
                        bulk_ids=sorted(failed_references),
                    )
                    self._add_failure(result, operation, error, failed)
                    progressed = True
                    continue
                queue.append(operation)
            if not queue or not progressed:
                break

        # dangling references are reported, rather than sent to the storage as they are
        for operation in queue:
            error = ConflictError(
                f"bulkIds {sorted(operation.referenced_bulk_ids)} could not be resolved",
                bulk_ids=sorted(operation.referenced_bulk_ids),
            )
            self._add_failure(result, operation, error, failed)
        return result

    def _run(
        self,
        resolver: BulkIdResolver,
        operation: OperationReferences,
        result: BulkResult,
        failed: set[str],
    ) -> None:
        try:
            status, resource = self._executor(operation.method, operation.path, operation.payload())
        except ScimError as error:
            self._add_failure(result, operation, error, failed)
            return

        location = operation.path
        if operation.method == "POST":
            resource = ScimData(resource or {})
            resource_id = resource.get("id")
            if not isinstance(resource_id, str) or not resource_id:
                error = InternalServerError(
                    "created resource has no id", bulk_id=operation.bulk_id
                )
                self._add_failure(result, operation, error, failed)
                return
            location = resource.get("meta.location") or f"{operation.path}/{resource_id}"
            resolver.add_resolved_bulk_id(operation.bulk_id, resource_id)
        result.operations.append(
            BulkOperationResult(
                method=operation.method,
                bulk_id=operation.bulk_id,
                location=location,
                status=status,
            )
        )

    @staticmethod
    def _add_failure(
        result: BulkResult,
        operation: OperationReferences,
        error: ScimError,
        failed: set[str],
    ) -> None:
        logger.debug("Bulk operation %r failed: %s", operation, error.detail)
        if operation.bulk_id:
            failed.add(operation.bulk_id)
        result.errors += 1
        result.operations.append(
            BulkOperationResult(
                method=operation.method,
                bulk_id=operation.bulk_id,
                location=None if operation.method == "POST" else operation.path,
                status=error.status,
                response=error.to_dict(),
            )
        )
