from scimkit.schemas.bulk_ops import BulkRequestSchema
from scimkit.schemas.group import GroupSchema
from scimkit.schemas.patch_op import PatchOpSchema
from scimkit.schemas.user import EnterpriseUserSchemaExtension, UserSchema

__all__ = [
    "BulkRequestSchema",
    "GroupSchema",
    "PatchOpSchema",
    "UserSchema",
    "EnterpriseUserSchemaExtension",
]
