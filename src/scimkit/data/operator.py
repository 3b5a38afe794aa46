import abc
import operator
from collections.abc import Mapping
from typing import Any, Generator, Optional

from scimkit.data.attrs import Attribute, AttributeWithCaseExact, Complex, DateTime, String
from scimkit.data.identifiers import AttrRep
from scimkit.data.scim_data import Missing, ScimData
from scimkit.registry import register_binary_operator, register_unary_operator


class Operator(abc.ABC):
    """
    Base class for operators. Operators test single element of multi-valued complex
    attribute, described by the `Complex` attribute.
    """

    @abc.abstractmethod
    def match(self, value: Optional[ScimData], complex_attr: Complex) -> bool:
        """
        Tests a given `value` against the operator and returns `True`
        if it matches, `False` otherwise.
        """


class LogicalOperator(Operator, abc.ABC):
    op: str

    def __init__(self, *sub_operators: Operator):
        self._sub_operators = list(sub_operators)

    @property
    def sub_operators(self) -> list[Operator]:
        """Sub-operators contained inside the operator."""
        return self._sub_operators

    def _collect_matches(
        self, value: Optional[ScimData], complex_attr: Complex
    ) -> Generator[bool, None, None]:
        for sub_operator in self.sub_operators:
            yield sub_operator.match(value, complex_attr)


class And(LogicalOperator):
    """
    Represents `and` SCIM operator. Matches if all sub-operators match.
    """

    op = "and"

    def match(self, value: Optional[ScimData], complex_attr: Complex) -> bool:
        return all(self._collect_matches(value or ScimData(), complex_attr))


class Or(LogicalOperator):
    """
    Represents `or` SCIM operator. Matches if any of sub-operators match.
    """

    op = "or"

    def match(self, value: Optional[ScimData], complex_attr: Complex) -> bool:
        return any(self._collect_matches(value or ScimData(), complex_attr))


class Not(LogicalOperator):
    """
    Represents `not` SCIM operator. Matches if a sub-operator does not match.
    """

    op = "not"

    def __init__(self, sub_operator: Operator):
        super().__init__(sub_operator)

    def match(self, value: Optional[ScimData], complex_attr: Complex) -> bool:
        return not next(self._collect_matches(value, complex_attr))


class AttributeOperator(Operator, abc.ABC):
    """
    Base class for all operators that involve sub-attributes directly.
    Every subclass which is not an abstract must specify `op`,
    `supported_scim_types`, and `supported_types` class attributes.
    """

    op: str
    supported_scim_types: set[str]
    supported_types: set[type]

    def __init__(self, attr_rep: AttrRep):
        self._attr_rep = attr_rep

    @property
    def attr_rep(self) -> AttrRep:
        """
        The representation of a sub-attribute which value should be matched.
        """
        return self._attr_rep


class UnaryAttributeOperator(AttributeOperator, abc.ABC):
    @staticmethod
    @abc.abstractmethod
    def operator(value: Any) -> bool:
        """
        Implements operator's logic for matching the provided value.
        """

    def match(self, value: Optional[ScimData], complex_attr: Complex) -> bool:
        attr = complex_attr.attrs.get(self.attr_rep)
        if attr is None or attr.scim_type() not in self.supported_scim_types:
            return False
        if not value:
            return False

        attr_value = value.get(self.attr_rep)
        if attr.multi_valued:
            if not isinstance(attr_value, list):
                return False
            return any(
                self.operator(item) for item in attr_value if type(item) in self.supported_types
            )
        return self.operator(attr_value)


class Present(UnaryAttributeOperator):
    op = "pr"
    supported_scim_types = {
        "string",
        "decimal",
        "dateTime",
        "reference",
        "boolean",
        "binary",
        "integer",
    }
    supported_types = {str, bool, int, float, type(None)}

    @staticmethod
    def operator(value: Any) -> bool:
        if isinstance(value, Mapping):
            return any(Present.operator(val) for val in value.values())
        if isinstance(value, str):
            return value != ""
        return value not in [None, Missing]


class BinaryAttributeOperator(AttributeOperator, abc.ABC):
    def __init__(self, attr_rep: AttrRep, value: Any):
        """
        Args:
            attr_rep: A representation of a sub-attribute which value should be
                compared with the operator's value.
            value: The operator's value (right operand), compared to the sub-attribute's value
                (left operand).

        Raises:
            TypeError: If the type of the `value` is not supported by the operator.
        """
        super().__init__(attr_rep=attr_rep)
        if type(value) not in self.supported_types:
            raise TypeError(
                f"value type {type(value).__name__!r} is not supported by {self.op!r} operator"
            )
        self._value = value

    @property
    def value(self) -> Any:
        return self._value

    @staticmethod
    @abc.abstractmethod
    def operator(attr_value: Any, op_value: Any) -> bool:
        """
        Implements operator's logic for matching the provided value.
        """

    def _get_values_for_comparison(
        self, value: Any, attr: Attribute
    ) -> Optional[list[tuple[Any, Any]]]:
        if attr.scim_type() not in self.supported_scim_types:
            return None

        op_value = self.value
        values = value if isinstance(value, list) else [value]

        if isinstance(attr, DateTime) and isinstance(op_value, str):
            op_value = DateTime.parse(op_value)
            if op_value is None:
                return None
            values = [DateTime.parse(item) if isinstance(item, str) else item for item in values]
            return [(item, op_value) for item in values if item is not None]

        if isinstance(attr, AttributeWithCaseExact):
            if isinstance(attr, String):
                try:
                    values = [
                        attr.precis.enforce(item) if isinstance(item, str) else item
                        for item in values
                    ]
                    if isinstance(op_value, str):
                        op_value = attr.precis.enforce(op_value)
                except UnicodeEncodeError:
                    return None
            if attr.case_exact:
                return [(item, op_value) for item in values]

            if isinstance(op_value, str):
                op_value = op_value.lower()
            return [
                (item.lower() if isinstance(item, str) else item, op_value) for item in values
            ]
        return [(item, op_value) for item in values]

    def match(self, value: Optional[ScimData], complex_attr: Complex) -> bool:
        """
        Tests a given `value` against the operator and returns `True`
        if it matches, `False` otherwise. If the sub-attribute is multi-valued, the whole
        `value` matches if one of its items matches.
        """
        attr = complex_attr.attrs.get(self.attr_rep)
        if attr is None:
            return False

        attr_value = None if not value else value.get(self.attr_rep)
        if attr_value in [None, Missing]:
            return False

        values = self._get_values_for_comparison(attr_value, attr)
        if values is None:
            return False

        for item, op_value in values:
            try:
                if self.operator(item, op_value):
                    return True
            except (AttributeError, TypeError):
                continue
        return False


_ALL_SCIM_TYPES = {"string", "decimal", "dateTime", "reference", "boolean", "binary", "integer"}
_ORDERED_SCIM_TYPES = {"string", "dateTime", "integer", "decimal"}


class Equal(BinaryAttributeOperator):
    op = "eq"
    supported_scim_types = _ALL_SCIM_TYPES
    supported_types = {str, bool, int, float, type(None)}

    @staticmethod
    def operator(attr_value: Any, op_value: Any) -> bool:
        return operator.eq(attr_value, op_value)


class NotEqual(BinaryAttributeOperator):
    op = "ne"
    supported_scim_types = _ALL_SCIM_TYPES
    supported_types = {str, bool, int, float, type(None)}

    @staticmethod
    def operator(attr_value: Any, op_value: Any) -> bool:
        return operator.ne(attr_value, op_value)


class Contains(BinaryAttributeOperator):
    op = "co"
    supported_scim_types = {"string", "reference"}
    supported_types = {str}

    @staticmethod
    def operator(attr_value: Any, op_value: Any) -> bool:
        return operator.contains(attr_value, op_value)


class StartsWith(BinaryAttributeOperator):
    op = "sw"
    supported_scim_types = {"string", "reference"}
    supported_types = {str}

    @staticmethod
    def operator(attr_value: Any, op_value: Any) -> bool:
        return attr_value.startswith(op_value)


class EndsWith(BinaryAttributeOperator):
    op = "ew"
    supported_scim_types = {"string", "reference"}
    supported_types = {str}

    @staticmethod
    def operator(attr_value: Any, op_value: Any) -> bool:
        return attr_value.endswith(op_value)


class GreaterThan(BinaryAttributeOperator):
    op = "gt"
    supported_scim_types = _ORDERED_SCIM_TYPES
    supported_types = {str, float, int}

    @staticmethod
    def operator(attr_value: Any, op_value: Any) -> bool:
        return operator.gt(attr_value, op_value)


class GreaterThanOrEqual(BinaryAttributeOperator):
    op = "ge"
    supported_scim_types = _ORDERED_SCIM_TYPES
    supported_types = {str, float, int}

    @staticmethod
    def operator(attr_value: Any, op_value: Any) -> bool:
        return operator.ge(attr_value, op_value)


class LesserThan(BinaryAttributeOperator):
    op = "lt"
    supported_scim_types = _ORDERED_SCIM_TYPES
    supported_types = {str, float, int}

    @staticmethod
    def operator(attr_value: Any, op_value: Any) -> bool:
        return operator.lt(attr_value, op_value)


class LesserThanOrEqual(BinaryAttributeOperator):
    op = "le"
    supported_scim_types = _ORDERED_SCIM_TYPES
    supported_types = {str, float, int}

    @staticmethod
    def operator(attr_value: Any, op_value: Any) -> bool:
        return operator.le(attr_value, op_value)


register_unary_operator(Present)
for _operator in [
    Equal,
    NotEqual,
    Contains,
    StartsWith,
    EndsWith,
    GreaterThan,
    GreaterThanOrEqual,
    LesserThan,
    LesserThanOrEqual,
]:
    register_binary_operator(_operator)
