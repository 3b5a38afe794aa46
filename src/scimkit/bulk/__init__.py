from scimkit.bulk.cycles import CircularReferenceDetector
from scimkit.bulk.processor import BulkOperationResult, BulkProcessor, BulkResult
from scimkit.bulk.references import (
    ArrayElementReference,
    AttributeReference,
    BulkIdReference,
    PatchValueReference,
    UriSegmentReference,
    parse_bulk_id_reference,
)
from scimkit.bulk.resolver import BulkIdResolver, OperationReferences

__all__ = [
    "ArrayElementReference",
    "AttributeReference",
    "BulkIdReference",
    "BulkIdResolver",
    "BulkOperationResult",
    "BulkProcessor",
    "BulkResult",
    "CircularReferenceDetector",
    "OperationReferences",
    "PatchValueReference",
    "UriSegmentReference",
    "parse_bulk_id_reference",
]
