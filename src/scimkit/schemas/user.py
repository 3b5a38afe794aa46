import re
import zoneinfo
from typing import Optional

import iso3166
import phonenumbers
import precis_i18n

from scimkit.data.attrs import (
    Attribute,
    AttributeMutability,
    AttributeReturn,
    Binary,
    Boolean,
    Complex,
    ExternalReference,
    ScimReference,
    String,
    UriReference,
)
from scimkit.data.schemas import ResourceSchema, SchemaExtension
from scimkit.error import ValidationError, ValidationIssues, ValidationWarning

_ACCEPT_LANGUAGE_REGEX = re.compile(
    r"\s*([a-z]{2})(?:-[A-Z]{2})?(?:\s*;q=([0-9]\.[0-9]))?(?:\s*,\s*([a-z]{2})(?:-[A-Z]{2})?"
    r"(?:\s*;q=([0-9]\.[0-9]))?)*\s*"
)
_LOCALE_REGEX = re.compile(r"[A-Za-z]{2,3}(?:[-_][A-Za-z]{4})?(?:[-_](?:[A-Za-z]{2}|[0-9]{3}))?")
_EMAIL_REGEX = re.compile(r"[^@\s\"(),:;<>\[\\\]]+@(?:[A-Za-z0-9-]+\.)+[A-Za-z0-9-]{2,}")


def _syntax_error(value_ok: bool) -> ValidationIssues:
    issues = ValidationIssues()
    if not value_ok:
        issues.add_error(issue=ValidationError.bad_value_syntax(), proceed=True)
    return issues


def _validate_preferred_language(value: str) -> ValidationIssues:
    return _syntax_error(_ACCEPT_LANGUAGE_REGEX.fullmatch(value) is not None)


def _validate_locale(value: str) -> ValidationIssues:
    return _syntax_error(_LOCALE_REGEX.fullmatch(value) is not None)


def _validate_email(value: str) -> ValidationIssues:
    return _syntax_error(_EMAIL_REGEX.fullmatch(value) is not None)


def _validate_timezone(value: str) -> ValidationIssues:
    issues = ValidationIssues()
    try:
        zoneinfo.ZoneInfo(value)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        issues.add_error(issue=ValidationError.bad_value_content(), proceed=True)
    return issues


def _validate_phone_number(value: str) -> ValidationIssues:
    issues = ValidationIssues()
    try:
        phonenumbers.parse(value, _check_region=False)
    except phonenumbers.NumberParseException:
        issues.add_warning(issue=ValidationWarning.unexpected_content("not a valid phone number"))
    return issues


def _validate_country(value: str) -> ValidationIssues:
    issues = ValidationIssues()
    if iso3166.countries_by_alpha2.get(value.upper()) is None:
        issues.add_error(issue=ValidationError.bad_value_content(), proceed=True)
    return issues


def _plural_attr(
    name: str,
    description: str,
    value: Attribute,
    type_values: Optional[list[str]] = None,
    **kwargs,
) -> Complex:
    """
    Multi-valued complex attribute with `value`, `display`, `type`, and `primary`
    sub-attributes, as most of multi-valued User attributes are.
    """
    return Complex(
        name=name,
        description=description,
        multi_valued=True,
        sub_attributes=[
            value,
            String("display", description="A human-readable name, used for display purposes."),
            String(
                "type",
                description="A label indicating the attribute's function.",
                canonical_values=type_values,
            ),
            Boolean("primary", description="Whether the value is the preferred one."),
        ],
        **kwargs,
    )


class UserSchema(ResourceSchema):
    """
    The core User schema, as specified in
    [RFC-7643, section 4.1](https://www.rfc-editor.org/rfc/rfc7643#section-4.1).
    """

    schema = "urn:ietf:params:scim:schemas:core:2.0:User"
    name = "User"
    plural_name = "Users"
    endpoint = "/Users"
    description = "User Account"
    base_attrs: list[Attribute] = [
        String(
            name="userName",
            description="Unique identifier for the User, used by the user to authenticate.",
            precis=precis_i18n.get_profile("UsernameCaseMapped"),
            required=True,
        ),
        Complex(
            name="name",
            description="The components of the user's real name.",
            sub_attributes=[
                String("formatted", description="The full name, formatted for display."),
                String("familyName", description="The family name of the User."),
                String("givenName", description="The given name of the User."),
                String("middleName", description="The middle name(s) of the User."),
                String("honorificPrefix", description="The honorific prefix(es) of the User."),
                String("honorificSuffix", description="The honorific suffix(es) of the User."),
            ],
        ),
        String("displayName", description="The name of the User, suitable for display."),
        String("nickName", description="The casual way to address the user in real life."),
        ExternalReference("profileUrl", description="URL of the User's online profile."),
        String("title", description="The user's title, such as 'Vice President'."),
        String("userType", description="Relationship between the organization and the user."),
        String(
            name="preferredLanguage",
            description="The User's preferred written or spoken language.",
            validators=[_validate_preferred_language],
        ),
        String(
            name="locale",
            description="The User's default location, used for localization.",
            validators=[_validate_locale],
        ),
        String(
            name="timezone",
            description="The User's time zone, e.g. 'America/Los_Angeles'.",
            validators=[_validate_timezone],
        ),
        Boolean("active", description="The User's administrative status."),
        String(
            name="password",
            description="The User's cleartext password.",
            mutability=AttributeMutability.WRITE_ONLY,
            returned=AttributeReturn.NEVER,
        ),
        _plural_attr(
            name="emails",
            description="Email addresses for the User.",
            value=String("value", validators=[_validate_email]),
            type_values=["work", "home", "other"],
        ),
        _plural_attr(
            name="phoneNumbers",
            description="Phone numbers for the User.",
            value=String("value", validators=[_validate_phone_number]),
            type_values=["work", "home", "mobile", "fax", "pager", "other"],
        ),
        _plural_attr(
            name="ims",
            description="Instant messaging addresses for the User.",
            value=String("value"),
        ),
        _plural_attr(
            name="photos",
            description="URLs of photos of the User.",
            value=ExternalReference("value"),
            type_values=["photo", "thumbnail"],
        ),
        Complex(
            name="addresses",
            description="Physical mailing addresses of the User.",
            multi_valued=True,
            sub_attributes=[
                String("formatted", description="The full mailing address."),
                String("streetAddress", description="The full street address component."),
                String("locality", description="The city or locality component."),
                String("region", description="The state or region component."),
                String("postalCode", description="The zip code or postal code component."),
                String(
                    "country",
                    description="The country name component, ISO 3166-1 alpha-2 code.",
                    validators=[_validate_country],
                ),
                String("type", canonical_values=["work", "home", "other"]),
                Boolean("primary"),
            ],
        ),
        Complex(
            name="groups",
            description="Groups to which the user belongs.",
            multi_valued=True,
            mutability=AttributeMutability.READ_ONLY,
            sub_attributes=[
                String("value", mutability=AttributeMutability.READ_ONLY),
                UriReference("$ref", mutability=AttributeMutability.READ_ONLY),
                String("display", mutability=AttributeMutability.READ_ONLY),
                String(
                    "type",
                    canonical_values=["direct", "indirect"],
                    mutability=AttributeMutability.READ_ONLY,
                ),
            ],
        ),
        _plural_attr(
            name="entitlements",
            description="Entitlements for the User.",
            value=String("value"),
        ),
        _plural_attr(
            name="roles",
            description="Roles for the User.",
            value=String("value"),
        ),
        _plural_attr(
            name="x509Certificates",
            description="Certificates issued to the User.",
            value=Binary("value"),
        ),
    ]


class EnterpriseUserSchemaExtension(SchemaExtension):
    """
    The Enterprise User extension, as specified in
    [RFC-7643, section 4.3](https://www.rfc-editor.org/rfc/rfc7643#section-4.3).
    """

    schema = "urn:ietf:params:scim:schemas:extension:enterprise:2.0:User"
    name = "EnterpriseUser"
    description = "Enterprise User"
    base_attrs: list[Attribute] = [
        String("employeeNumber", description="Identifier assigned to a person."),
        String("costCenter", description="Identifies the name of a cost center."),
        String("organization", description="Identifies the name of an organization."),
        String("division", description="Identifies the name of a division."),
        String("department", description="Identifies the name of a department."),
        Complex(
            name="manager",
            description="The User's manager.",
            sub_attributes=[
                String("value", description="The id of the manager's resource."),
                ScimReference(
                    "$ref",
                    description="The URI of the manager's resource.",
                    reference_types=["User"],
                ),
                String(
                    "displayName",
                    description="The displayName of the User's manager.",
                    mutability=AttributeMutability.READ_ONLY,
                ),
            ],
        ),
    ]
