import logging
from typing import Iterable

from scimkit.error import ConflictError

logger = logging.getLogger(__name__)


class CircularReferenceDetector:
    """
    Keeps the graph of bulkId references within one bulk request and checks it for
    circles every time a new operation is registered.

    Every registration checks whether the new operation can reach itself. Since no circle
    existed before, any circle created by the registration must go through the new operation,
    so walking from the new operation only is enough.
    """

    def __init__(self):
        self._graph: dict[str, set[str]] = {}

    @property
    def graph(self) -> dict[str, set[str]]:
        return self._graph

    def register(self, bulk_id: str, references: Iterable[str]) -> None:
        """
        Registers bulkIds referenced by the operation identified with `bulk_id`.

        Raises:
            ConflictError: If the operation references itself, directly or through other
                operations. The error names the registered bulkId and the bulkId that
                closes the circle.
        """
        self._graph[bulk_id] = set(references)
        logger.debug("Operation %r references bulkIds %s", bulk_id, sorted(self._graph[bulk_id]))
        self._walk(bulk_id)

    def _walk(self, start: str) -> None:
        visited = {start}
        stack = [start]
        while stack:
            current = stack.pop()
            for referenced in sorted(self._graph.get(current, ())):
                if referenced == start:
                    raise ConflictError(
                        f"the bulkIds {start!r} and {current!r} form a direct or indirect "
                        "circular reference that can not be resolved",
                        bulk_ids=[start, current],
                    )
                if referenced not in visited:
                    visited.add(referenced)
                    stack.append(referenced)
