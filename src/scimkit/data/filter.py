import re
from typing import Any, MutableMapping, Optional

from scimkit.data import operator as op
from scimkit.data.attrs import Complex
from scimkit.data.identifiers import AttrRep, AttrRepFactory
from scimkit.data.scim_data import ScimData
from scimkit.data.utils import (
    OP_REGEX,
    decode_placeholders,
    deserialize_comparison_value,
    deserialize_placeholder,
    encode_strings,
    get_placeholder,
)
from scimkit.error import ValidationError, ValidationIssues
from scimkit.registry import binary_operators, unary_operators

OR_LOGICAL_OPERATOR_SPLIT_REGEX = re.compile(r"\s*\bor\b\s*", flags=re.DOTALL | re.IGNORECASE)
AND_LOGICAL_OPERATOR_SPLIT_REGEX = re.compile(r"\s*\band\b\s*", flags=re.DOTALL | re.IGNORECASE)
NOT_LOGICAL_OPERATOR_REGEX = re.compile(r"\s*\bnot\b\s*(.*)", flags=re.DOTALL | re.IGNORECASE)


class _Parser:
    def __init__(self, exp: str):
        self.exp, self.strings = encode_strings(exp)
        self.groups: dict[str, tuple[str, Optional[op.Operator]]] = {}
        self.issues = ValidationIssues()

    def decode(self, exp: str) -> str:
        for id_, (group_exp, _) in self.groups.items():
            exp = exp.replace(f"|&PLACE_HOLDER_{id_}&|", group_exp)
        return decode_placeholders(exp, self.strings)

    def parse(self) -> Optional[op.Operator]:
        return self._parse_exp(self.exp)

    def _error(self, issue: ValidationError) -> None:
        self.issues.add_error(issue=issue, proceed=False)

    def _parse_exp(self, exp: str) -> Optional[op.Operator]:
        exp = self._encode_groups(exp)
        if exp is None:
            return None
        if exp.strip() == "":
            self._error(ValidationError.empty_filter_expression())
            return None

        or_operands = self._split(exp, OR_LOGICAL_OPERATOR_SPLIT_REGEX, "or")
        if or_operands is None:
            return None
        parsed_or = []
        for or_operand in or_operands:
            and_operands = self._split(or_operand, AND_LOGICAL_OPERATOR_SPLIT_REGEX, "and")
            if and_operands is None:
                return None
            parsed_and = []
            for and_operand in and_operands:
                parsed = self._parse_not_exp(and_operand)
                if parsed is None:
                    return None
                parsed_and.append(parsed)
            parsed_or.append(parsed_and[0] if len(parsed_and) == 1 else op.And(*parsed_and))
        return parsed_or[0] if len(parsed_or) == 1 else op.Or(*parsed_or)

    def _encode_groups(self, exp: str) -> Optional[str]:
        depth, start = 0, 0
        groups = []
        for i, char in enumerate(exp):
            if char == "(":
                if depth == 0:
                    start = i
                depth += 1
            elif char == ")":
                if depth == 0:
                    self._error(ValidationError.bracket_not_opened_or_closed())
                    return None
                depth -= 1
                if depth == 0:
                    groups.append(exp[start : i + 1])
        if depth != 0:
            self._error(ValidationError.bracket_not_opened_or_closed())
            return None

        for group_exp in groups:
            parsed = self._parse_exp(group_exp[1:-1])
            if parsed is None:
                return None
            id_, placeholder = get_placeholder()
            self.groups[id_] = (self.decode(group_exp), parsed)
            exp = exp.replace(group_exp, placeholder, 1)
        return exp

    def _split(self, exp: str, regexp: re.Pattern, op_name: str) -> Optional[list[str]]:
        operands = regexp.split(exp)
        if len(operands) > 1 and any(operand.strip() == "" for operand in operands):
            self._error(
                ValidationError.missing_operand_for_operator(
                    operator=op_name, expression=self.decode(exp.strip())
                )
            )
            return None
        return operands

    def _parse_not_exp(self, exp: str) -> Optional[op.Operator]:
        match = NOT_LOGICAL_OPERATOR_REGEX.fullmatch(exp)
        if match is None:
            return self._parse_attr_exp(exp)
        if not match.group(1).strip():
            self._error(
                ValidationError.missing_operand_for_operator(
                    operator="not", expression=self.decode(exp.strip())
                )
            )
            return None
        parsed = self._parse_attr_exp(match.group(1))
        return None if parsed is None else op.Not(parsed)

    def _parse_attr_exp(self, exp: str) -> Optional[op.Operator]:
        exp = exp.strip()
        if (id_ := deserialize_placeholder(exp)) is not None and id_ in self.groups:
            return self.groups[id_][1]

        components = OP_REGEX.split(exp)
        if len(components) not in (2, 3):
            self._error(ValidationError.unknown_expression(self.decode(exp)))
            return None

        attr_rep_exp = self.decode(components[0])
        issues = AttrRepFactory.validate(attr_rep_exp)
        if issues.has_errors():
            self.issues.merge(issues)
            return None
        attr_rep = AttrRepFactory.deserialize(attr_rep_exp)
        # sub-attributes are addressed relative to the filtered complex attribute
        attr_rep = AttrRep(attr=attr_rep.sub_attr if attr_rep.is_sub_attr else attr_rep.attr)

        op_exp = components[1].lower()
        if len(components) == 2:
            unary = unary_operators.get(op_exp)
            if unary is None:
                if op_exp in binary_operators:
                    self._error(
                        ValidationError.missing_operand_for_operator(
                            operator=op_exp, expression=self.decode(exp)
                        )
                    )
                else:
                    self._error(
                        ValidationError.unknown_operator(
                            operator=self.decode(op_exp), expression=self.decode(exp)
                        )
                    )
                return None
            return unary(attr_rep)

        binary = binary_operators.get(op_exp)
        if binary is None:
            self._error(
                ValidationError.unknown_operator(
                    operator=self.decode(op_exp), expression=self.decode(exp)
                )
            )
            return None
        value_exp = self.decode(components[2])
        try:
            return binary(attr_rep, deserialize_comparison_value(value_exp))
        except (TypeError, ValueError):
            self._error(ValidationError.bad_operand(value_exp))
            return None


class Filter:
    """
    Value selection filter, used in patch paths (`emails[type eq "work"]`). Evaluated against
    single elements of multi-valued complex attribute, so filter attributes are its
    sub-attributes. Supports all SCIM comparison operators, `and`, `or`, `not`, and grouping
    with parentheses.

    Args:
        operator: Underlying filter operator, used for data filtering.

    Examples:
        >>> work = Filter.deserialize('type eq "work"')
        >>> work({"type": "work", "value": "bjensen@example.com"}, emails_attr)
        True
    """

    def __init__(self, operator: op.Operator):
        self._operator = operator

    @property
    def operator(self) -> op.Operator:
        return self._operator

    @property
    def attr_reps(self) -> list[AttrRep]:
        """
        Representations of all sub-attributes included in the filter.
        """
        reps: list[AttrRep] = []

        def collect(operator: op.Operator) -> None:
            if isinstance(operator, op.AttributeOperator):
                if operator.attr_rep not in reps:
                    reps.append(operator.attr_rep)
            elif isinstance(operator, op.LogicalOperator):
                for sub_operator in operator.sub_operators:
                    collect(sub_operator)

        collect(self._operator)
        return reps

    @classmethod
    def validate(cls, filter_exp: str) -> ValidationIssues:
        """
        Validates the filter expression syntax, according to RFC-7644.
        """
        parser = _Parser(filter_exp)
        parser.parse()
        return parser.issues

    @classmethod
    def deserialize(cls, filter_exp: str) -> "Filter":
        """
        Deserializes the filter expression.

        Raises:
            ValueError: If provided filter expression is invalid.
        """
        parser = _Parser(filter_exp)
        operator = parser.parse()
        if operator is None or parser.issues.has_errors():
            raise ValueError(f"invalid filter expression {filter_exp!r}")
        return cls(operator)

    def serialize(self) -> str:
        """
        Serializes `Filter` to string filter expression.
        """
        output = self._serialize(self._operator)
        if output.startswith("(") and output.endswith(")"):
            output = output[1:-1]
        return output

    @staticmethod
    def _serialize(operator: op.Operator) -> str:
        if isinstance(operator, op.BinaryAttributeOperator):
            return f"{operator.attr_rep} {operator.op} {_serialize_value(operator.value)}"
        if isinstance(operator, op.AttributeOperator):
            return f"{operator.attr_rep} {operator.op}"
        if isinstance(operator, op.Not):
            return f"not ({Filter._serialize(operator.sub_operators[0])})"
        if isinstance(operator, (op.And, op.Or)):
            output = f" {operator.op} ".join(
                Filter._serialize(sub_operator) for sub_operator in operator.sub_operators
            )
            return f"({output})"
        raise TypeError(f"unsupported filter type '{type(operator).__name__}'")

    def __call__(self, data: MutableMapping[str, Any], complex_attr: Complex) -> bool:
        """
        Matches the element of multi-valued complex attribute against the filter.
        """
        return self._operator.match(ScimData(data), complex_attr)

    def __repr__(self) -> str:
        return f"Filter({self.serialize()})"


def _serialize_value(value: Any) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)
