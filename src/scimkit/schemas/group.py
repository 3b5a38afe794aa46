from scimkit.data.attrs import (
    Attribute,
    AttributeMutability,
    Complex,
    ScimReference,
    String,
)
from scimkit.data.schemas import ResourceSchema


class GroupSchema(ResourceSchema):
    """
    The core Group schema, as specified in
    [RFC-7643, section 4.2](https://www.rfc-editor.org/rfc/rfc7643#section-4.2).
    Members reference Users and Groups with `value` (the member's `id`), so they can
    carry bulkId references in bulk requests.
    """

    schema = "urn:ietf:params:scim:schemas:core:2.0:Group"
    name = "Group"
    plural_name = "Groups"
    endpoint = "/Groups"
    description = "Group"
    base_attrs: list[Attribute] = [
        String(
            name="displayName",
            description="A human-readable name for the Group.",
            required=True,
        ),
        Complex(
            name="members",
            multi_valued=True,
            description="A list of members of the Group.",
            sub_attributes=[
                String(
                    name="value",
                    description="Identifier of the member of this Group.",
                    mutability=AttributeMutability.IMMUTABLE,
                ),
                ScimReference(
                    name="$ref",
                    description="The URI of the member resource.",
                    reference_types=["User", "Group"],
                    mutability=AttributeMutability.IMMUTABLE,
                ),
                String(
                    name="type",
                    description="The type of member resource, 'User' or 'Group'.",
                    canonical_values=["User", "Group"],
                    restrict_canonical_values=True,
                    mutability=AttributeMutability.IMMUTABLE,
                ),
                String(
                    name="display",
                    description="A human-readable name of the member.",
                    mutability=AttributeMutability.IMMUTABLE,
                ),
            ],
        ),
    ]
