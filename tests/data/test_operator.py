import pytest

from scimkit.data.attrs import (
    Binary,
    Boolean,
    Complex,
    DateTime,
    Decimal,
    ExternalReference,
    Integer,
    String,
)
from scimkit.data.identifiers import AttrRep
from scimkit.data.operator import (
    And,
    Contains,
    EndsWith,
    Equal,
    GreaterThan,
    GreaterThanOrEqual,
    LesserThan,
    LesserThanOrEqual,
    Not,
    NotEqual,
    Or,
    Present,
    StartsWith,
)
from scimkit.data.scim_data import ScimData

COMPLEX = Complex(
    "c_mv",
    multi_valued=True,
    sub_attributes=[
        String("str"),
        String("str_cs", case_exact=True),
        String("str_mv", multi_valued=True),
        Integer("int"),
        Decimal("decimal"),
        Boolean("bool"),
        DateTime("datetime"),
        Binary("binary"),
        ExternalReference("ref"),
    ],
)

ITEM = ScimData(
    {
        "str": "Abc",
        "str_cs": "Abc",
        "str_mv": ["abc", "def"],
        "int": 42,
        "decimal": 4.2,
        "bool": True,
        "datetime": "2024-07-21T14:45:12+00:00",
        "binary": "YQ==",
        "ref": "https://example.com/v2/Users/1",
    }
)


@pytest.mark.parametrize(
    ("operator", "expected"),
    (
        (Equal(AttrRep("str"), "abc"), True),
        (Equal(AttrRep("STR"), "ABC"), True),
        (Equal(AttrRep("str_cs"), "abc"), False),
        (Equal(AttrRep("str_cs"), "Abc"), True),
        (Equal(AttrRep("str_mv"), "DEF"), True),
        (Equal(AttrRep("int"), 42), True),
        (Equal(AttrRep("int"), 42.0), True),
        (Equal(AttrRep("decimal"), 4.2), True),
        (Equal(AttrRep("bool"), True), True),
        (Equal(AttrRep("bool"), False), False),
        (Equal(AttrRep("datetime"), "2024-07-21T14:45:12Z"), True),
        (Equal(AttrRep("binary"), "YQ=="), True),
        (Equal(AttrRep("unknown"), "abc"), False),
        (Equal(AttrRep("str"), None), False),
        (NotEqual(AttrRep("str"), "def"), True),
        (NotEqual(AttrRep("str"), "ABC"), False),
        (Contains(AttrRep("str"), "B"), True),
        (Contains(AttrRep("ref"), "/Users/"), True),
        (Contains(AttrRep("int"), "4"), False),
        (StartsWith(AttrRep("str"), "ab"), True),
        (StartsWith(AttrRep("str_cs"), "ab"), False),
        (EndsWith(AttrRep("str_mv"), "ef"), True),
        (EndsWith(AttrRep("str"), "x"), False),
        (GreaterThan(AttrRep("int"), 41), True),
        (GreaterThan(AttrRep("int"), 42), False),
        (GreaterThanOrEqual(AttrRep("int"), 42), True),
        (GreaterThan(AttrRep("str"), "abb"), True),
        (GreaterThan(AttrRep("datetime"), "2024-07-21T14:45:11Z"), True),
        (LesserThan(AttrRep("decimal"), 4.3), True),
        (LesserThan(AttrRep("datetime"), "not a date"), False),
        (LesserThanOrEqual(AttrRep("decimal"), 4.2), True),
        (GreaterThan(AttrRep("bool"), 0), False),
        (GreaterThan(AttrRep("binary"), "A"), False),
        (Present(AttrRep("str")), True),
        (Present(AttrRep("str_mv")), True),
        (Present(AttrRep("unknown")), False),
    ),
)
def test_operator_matches_complex_value(operator, expected):
    assert operator.match(ITEM, COMPLEX) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    (
        (ScimData({"str": ""}), False),
        (ScimData({"str": None}), False),
        (ScimData({"int": 0}), False),
        (ScimData({"str": "", "str_mv": []}), False),
        (ScimData(), False),
        (None, False),
    ),
)
def test_present_operator_does_not_match_empty_values(value, expected):
    assert Present(AttrRep("str")).match(value, COMPLEX) is expected


def test_present_operator_matches_falsy_values():
    assert Present(AttrRep("int")).match(ScimData({"int": 0}), COMPLEX)
    assert Present(AttrRep("bool")).match(ScimData({"bool": False}), COMPLEX)


@pytest.mark.parametrize(
    ("operator", "expected"),
    (
        (And(Equal(AttrRep("str"), "abc"), Equal(AttrRep("int"), 42)), True),
        (And(Equal(AttrRep("str"), "abc"), Equal(AttrRep("int"), 41)), False),
        (Or(Equal(AttrRep("str"), "xyz"), Equal(AttrRep("int"), 42)), True),
        (Or(Equal(AttrRep("str"), "xyz"), Equal(AttrRep("int"), 41)), False),
        (Not(Equal(AttrRep("str"), "abc")), False),
        (Not(Equal(AttrRep("str"), "xyz")), True),
        (
            And(
                Or(Equal(AttrRep("str"), "xyz"), Present(AttrRep("bool"))),
                Not(LesserThan(AttrRep("int"), 10)),
            ),
            True,
        ),
    ),
)
def test_logical_operator_matches_complex_value(operator, expected):
    assert operator.match(ITEM, COMPLEX) is expected


@pytest.mark.parametrize(
    ("operator_cls", "value"),
    (
        (Contains, 1),
        (StartsWith, True),
        (GreaterThan, None),
        (GreaterThan, True),
        (Equal, [1]),
        (Equal, {"a": 1}),
    ),
)
def test_operator_rejects_value_of_unsupported_type(operator_cls, value):
    with pytest.raises(TypeError, match="is not supported by"):
        operator_cls(AttrRep("str"), value)
