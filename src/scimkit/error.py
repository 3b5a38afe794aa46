from collections import defaultdict
from enum import Enum
from typing import Any, Collection, Iterator, Optional, Sequence, TypedDict, Union

from typing_extensions import NotRequired


class ScimErrorType(str, Enum):
    INVALID_FILTER = "invalidFilter"
    UNIQUENESS = "uniqueness"
    MUTABILITY = "mutability"
    INVALID_SYNTAX = "invalidSyntax"
    INVALID_PATH = "invalidPath"
    NO_TARGET = "noTarget"
    INVALID_VALUE = "invalidValue"
    TOO_MANY = "tooMany"


class ScimError(Exception):
    """
    Base class for errors raised when a resource can not be modified, or a bulk request can not
    be processed. Carries everything needed to build SCIM error response, as specified in
    [RFC-7644, section 3.12](https://www.rfc-editor.org/rfc/rfc7644#section-3.12).
    """

    status: int = 400
    scim_type: Optional[ScimErrorType] = None

    def __init__(
        self,
        detail: str,
        scim_type: Optional[Union[str, ScimErrorType]] = None,
        **context: Any,
    ):
        """
        Args:
            detail: Human-readable description of the error.
            scim_type: SCIM error type. If not provided, the class-level one is used.
            **context: Additional data related to the error, e.g. attribute name, or bulkId.
        """
        super().__init__(detail)
        self.detail = detail
        if scim_type is not None:
            self.scim_type = ScimErrorType(scim_type)
        self.context = context

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.detail!r})"

    def to_dict(self) -> dict[str, Any]:
        output: dict[str, Any] = {
            "schemas": ["urn:ietf:params:scim:api:messages:2.0:Error"],
            "status": str(self.status),
            "detail": self.detail,
        }
        if self.scim_type is not None:
            output["scimType"] = self.scim_type.value
        return output


class BadRequestError(ScimError):
    """
    The request is malformed, e.g. bulkId reference has bad syntax, or an operation
    references itself.
    """

    scim_type = ScimErrorType.INVALID_VALUE


class InvalidPathError(BadRequestError):
    """
    Path expression does not resolve against the schema, or value selection filter targets
    unsupported attribute.
    """

    scim_type = ScimErrorType.INVALID_PATH


class MutabilityError(BadRequestError):
    """
    Attempt to modify `readOnly` attribute, or already populated `immutable` attribute.
    """

    scim_type = ScimErrorType.MUTABILITY


class InvalidValueError(BadRequestError):
    """
    Value does not fit the target, e.g. too many values for single-valued attribute,
    non-complex value for complex attribute, or value that can not be converted to
    the attribute's type.
    """

    scim_type = ScimErrorType.INVALID_VALUE


class NoTargetError(BadRequestError):
    """
    Value selection filter matched no values, but at least one was required.
    """

    scim_type = ScimErrorType.NO_TARGET


class ConflictError(ScimError):
    """
    Operations within the bulk request reference each other in a circle.
    """

    status = 409


class PayloadTooLargeError(ScimError):
    """
    Bulk request exceeds the maximum payload size set in the service provider configuration.
    """

    status = 413


class InternalServerError(ScimError):
    """
    The storage reported success, but returned a result that can not be used, e.g. created
    resource without `id`.
    """

    status = 500


class NotSupportedError(ScimError):
    """
    Requested operation is disabled in the service provider configuration.
    """

    status = 501


class ValidationError:
    """
    Represents a validation error. Uniquely identified by the error code.

    Pre-formatted messages stored in `message_by_code` can be modified, as long as embedded
    string parameters stay the same.
    """

    message_by_code = {
        1: "bad value syntax",
        2: "bad type, expecting '{expected}'",
        3: "bad encoding, expecting '{expected}'",
        4: "bad value content",
        5: "missing",
        6: "must not be provided",
        9: "must be one of: {expected_values}",
        15: "'primary' attribute set to 'True' MUST appear no more than once",
        16: "bad SCIM reference, allowed resources: {allowed_resources}",
        17: "bad attribute name {attribute!r}",
        25: "unknown bulk operation resource",
        26: "too many operations in bulk (max {max})",
        28: "unknown modification target",
        29: "attribute can not be modified",
        30: "attribute can not be deleted",
        # Error codes specific to filter validation
        100: "one of brackets is not opened / closed",
        103: "missing operand for operator '{operator}' in expression '{expression}'",
        104: "unknown operator '{operator}' in expression '{expression}'",
        105: "no expression or empty expression inside grouping operator",
        106: "unknown expression '{expression}'",
        108: "complex attribute group {attribute!r} has no expression",
        109: "bad operand {value!r}",
    }

    def __init__(
        self,
        code: int,
        scim_error: Union[str, ScimErrorType],
        message: Optional[str] = None,
        **context: Any,
    ):
        """
        Args:
            code: The error code. Can be one of built-in error_codes (see `message_by_code`
                attribute) or custom. If custom, it must be greater than 1000.
            scim_error: SCIM error corresponding to the validation error.
            message: Error message. Can replace built-in message or be specified for custom
                validation error.
            **context: Parameters passed to pre-formatted messages.
        """
        if code not in self.message_by_code and code <= 1000:
            raise ValueError("error code for custom validation error must be greater than 1000")
        self.code = code
        if message is None:
            message = "" if code > 1000 else self.message_by_code[code].format(**context)
        self.message = message
        self.context = context
        self.scim_error = ScimErrorType(scim_error)

    def __repr__(self) -> str:
        return f"ValidationError({self.code}, {self.message!r})"

    @classmethod
    def bad_value_syntax(cls, scim_error: str = ScimErrorType.INVALID_SYNTAX):
        return cls(code=1, scim_error=scim_error)

    @classmethod
    def bad_type(cls, expected: str, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=2, scim_error=scim_error, expected=expected)

    @classmethod
    def bad_encoding(cls, expected: str, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=3, scim_error=scim_error, expected=expected)

    @classmethod
    def bad_value_content(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=4, scim_error=scim_error)

    @classmethod
    def missing(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=5, scim_error=scim_error)

    @classmethod
    def must_not_be_provided(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=6, scim_error=scim_error)

    @classmethod
    def must_be_one_of(
        cls,
        expected_values: Collection[Any],
        scim_error: str = ScimErrorType.INVALID_VALUE,
    ):
        return cls(code=9, scim_error=scim_error, expected_values=expected_values)

    @classmethod
    def multiple_primary_values(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=15, scim_error=scim_error)

    @classmethod
    def bad_scim_reference(
        cls,
        allowed_resources: Collection[str],
        scim_error: str = ScimErrorType.INVALID_VALUE,
    ):
        return cls(code=16, scim_error=scim_error, allowed_resources=list(allowed_resources))

    @classmethod
    def bad_attribute_name(cls, attribute: str, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=17, scim_error=scim_error, attribute=attribute)

    @classmethod
    def unknown_operation_resource(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=25, scim_error=scim_error)

    @classmethod
    def too_many_bulk_operations(cls, max_: int, scim_error: str = ScimErrorType.TOO_MANY):
        return cls(code=26, scim_error=scim_error, max=max_)

    @classmethod
    def unknown_modification_target(cls, scim_error: str = ScimErrorType.NO_TARGET):
        return cls(code=28, scim_error=scim_error)

    @classmethod
    def attribute_can_not_be_modified(cls, scim_error: str = ScimErrorType.MUTABILITY):
        return cls(code=29, scim_error=scim_error)

    @classmethod
    def attribute_can_not_be_deleted(cls, scim_error: str = ScimErrorType.MUTABILITY):
        return cls(code=30, scim_error=scim_error)

    @classmethod
    def bracket_not_opened_or_closed(cls, scim_error: str = ScimErrorType.INVALID_FILTER):
        return cls(code=100, scim_error=scim_error)

    @classmethod
    def missing_operand_for_operator(
        cls,
        operator: str,
        expression: str,
        scim_error: str = ScimErrorType.INVALID_FILTER,
    ):
        return cls(code=103, scim_error=scim_error, operator=operator, expression=expression)

    @classmethod
    def unknown_operator(
        cls, operator: str, expression: str, scim_error: str = ScimErrorType.INVALID_FILTER
    ):
        return cls(code=104, scim_error=scim_error, operator=operator, expression=expression)

    @classmethod
    def empty_filter_expression(cls, scim_error: str = ScimErrorType.INVALID_FILTER):
        return cls(code=105, scim_error=scim_error)

    @classmethod
    def unknown_expression(cls, expression: str, scim_error: str = ScimErrorType.INVALID_FILTER):
        return cls(code=106, scim_error=scim_error, expression=expression)

    @classmethod
    def empty_complex_attribute_expression(
        cls, attribute: str, scim_error: str = ScimErrorType.INVALID_FILTER
    ):
        return cls(code=108, scim_error=scim_error, attribute=attribute)

    @classmethod
    def bad_operand(cls, value: Any, scim_error: str = ScimErrorType.INVALID_FILTER):
        return cls(code=109, scim_error=scim_error, value=value)

    def __eq__(self, other):
        if not isinstance(other, ValidationError):
            return False
        return self.code == other.code


class ValidationWarning:
    """
    Represents a validation warning. Uniquely identified by the warning code.
    """

    message_by_code = {
        1: "value should be one of: {expected_values}",
        3: "unexpected content, {reason}",
    }

    def __init__(self, code: int, message: Optional[str] = None, **context: Any):
        if code not in self.message_by_code and code <= 1000:
            raise ValueError("warning code for custom validation warning must be greater than 1000")
        self.code = code
        if message is None:
            message = "" if code > 1000 else self.message_by_code[code].format(**context)
        self.message = message
        self.context = context

    @classmethod
    def should_be_one_of(cls, expected_values: Collection[Any]):
        return cls(code=1, expected_values=expected_values)

    @classmethod
    def unexpected_content(cls, reason: str):
        return cls(code=3, reason=reason)

    def __eq__(self, other):
        if not isinstance(other, ValidationWarning):
            return False
        return self.code == other.code


class ValidationIssueDict(TypedDict):
    code: int
    error: NotRequired[str]
    context: NotRequired[dict]


class ValidationIssues:
    """
    Keeps track of validation errors and warnings, by locations they were reported for.
    """

    def __init__(self) -> None:
        self._errors: dict[tuple, list[ValidationError]] = defaultdict(list)
        self._warnings: dict[tuple, list[ValidationWarning]] = defaultdict(list)
        self._stop_proceeding: dict[tuple, set[int]] = defaultdict(set)

    @property
    def errors(self) -> Iterator[tuple[tuple[str, ...], list[ValidationError]]]:
        """Validation errors by locations where they were added."""
        return iter(self._errors.items())

    @property
    def warnings(self) -> Iterator[tuple[tuple[str, ...], list[ValidationWarning]]]:
        """Validation warnings by locations where they were added."""
        return iter(self._warnings.items())

    def merge(
        self,
        issues: "ValidationIssues",
        location: Optional[Sequence[Union[str, int]]] = None,
    ) -> None:
        """
        Merges provided validation `issues` under specified `location`, if specified, in the
        top-level otherwise.
        """
        location = tuple(location or tuple())
        for other_location, errors in issues._errors.items():
            new_location = location + other_location
            self._errors[new_location].extend(errors)
            if stop_codes := issues._stop_proceeding.get(other_location):
                self._stop_proceeding[new_location].update(stop_codes)
        for other_location, warnings in issues._warnings.items():
            new_location = location + other_location
            self._warnings[new_location].extend(warnings)

    def add_error(
        self,
        issue: ValidationError,
        proceed: bool,
        location: Optional[Sequence[Union[str, int]]] = None,
    ) -> None:
        """
        Adds a validation error under specified `location`, if specified, in the top-level. The
        `proceed` flag is an indicator whether the specified `location` could continue to be
        validated against different conditions (`True`), or further validation should be terminated
        (`False`).
        """
        location = tuple(location or tuple())
        self._errors[location].append(issue)
        if not proceed:
            self._stop_proceeding[location].add(issue.code)

    def add_warning(
        self,
        issue: ValidationWarning,
        location: Optional[Sequence[Union[str, int]]] = None,
    ) -> None:
        location = tuple(location or tuple())
        self._warnings[location].append(issue)

    def can_proceed(self, *locations: Sequence[Union[str, int]]) -> bool:
        """
        Returns flag indicating whether validation could proceed given `locations`. If all
        the provided `locations` have no errors, or these errors have been added with
        `proceed=True`, then `True` is returned.
        """
        if not locations:
            locations = (tuple(),)
        for location in locations:
            location = tuple(location)
            for i in range(len(location) + 1):
                if location[:i] in self._stop_proceeding:
                    return False
        return True

    def has_errors(self, *locations: Sequence[Union[str, int]]) -> bool:
        """
        Returns flag indicating whether any errors have been added under specified `locations`.
        """
        if not locations:
            locations = (tuple(),)

        for location in locations:
            location = tuple(location)
            for issue_location in self._errors:
                if issue_location[: len(location)] == location:
                    return True

        return False

    def first_error(self) -> Optional[tuple[tuple[str, ...], ValidationError]]:
        """
        Returns the first reported error together with its location, or `None` if there
        are no errors.
        """
        for location, errors in self._errors.items():
            if errors:
                return location, errors[0]
        return None

    def to_dict(self, msg: bool = False, ctx: bool = False) -> dict:
        """
        Converts `ValidationIssues` to a dictionary.
        """
        output: dict = {}
        self._to_dict("_errors", self._errors, output, msg=msg, ctx=ctx)
        self._to_dict("_warnings", self._warnings, output, msg=msg, ctx=ctx)
        return output

    @staticmethod
    def _to_dict(
        key: str, structure: dict, output: dict, msg: bool = False, ctx: bool = False
    ) -> dict:
        for location, issues in structure.items():
            current_level = output
            for part in location:
                current_level = current_level.setdefault(str(part), {})
            current_level.setdefault(key, [])
            for issue in issues:
                current_level[key].append(ValidationIssues._issue_to_dict(issue, msg=msg, ctx=ctx))
        return output

    @staticmethod
    def _issue_to_dict(
        issue: Union[ValidationError, ValidationWarning],
        msg: bool = False,
        ctx: bool = False,
    ) -> ValidationIssueDict:
        output: ValidationIssueDict = {"code": issue.code}
        if msg:
            output["error"] = issue.message
        if ctx:
            output["context"] = issue.context
        return output
