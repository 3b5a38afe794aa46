from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class PatchOption:
    supported: bool = False


@dataclass(frozen=True)
class BulkOption:
    """
    Limits of bulk requests. Both `max_operations` and `max_payload_size` (in bytes) are
    required once bulk requests are supported.
    """

    supported: bool = False
    max_operations: Optional[int] = None
    max_payload_size: Optional[int] = None

    def __post_init__(self):
        if self.supported and not (self.max_payload_size and self.max_operations):
            raise ValueError(
                "'max_payload_size' and 'max_operations' must be specified "
                "if bulk operations are supported"
            )


@dataclass(frozen=True)
class ServiceProviderConfig:
    """
    Service provider capabilities that affect resource modification and bulk processing.
    Available fields are a subset of the ones defined in
    [RFC-7643](https://www.rfc-editor.org/rfc/rfc7643#section-5).
    """

    patch: PatchOption
    bulk: BulkOption
    documentation_uri: str = ""

    @classmethod
    def create(
        cls,
        patch: Optional[dict[str, Any]] = None,
        bulk: Optional[dict[str, Any]] = None,
        documentation_uri: str = "",
    ) -> "ServiceProviderConfig":
        """
        Creates `ServiceProviderConfig` from plain options. Everything is disabled unless
        enabled explicitly.

        Examples:
            >>> ServiceProviderConfig.create(
            >>>     patch={"supported": True},
            >>>     bulk={"supported": True, "max_operations": 10, "max_payload_size": 4242},
            >>> )
        """
        return cls(
            patch=PatchOption(**(patch or {})),
            bulk=BulkOption(**(bulk or {})),
            documentation_uri=documentation_uri,
        )
