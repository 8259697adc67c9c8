"""Tests for path and containment predicate strategies."""

from __future__ import annotations

import pytest

from biograph_query import (
    Condition,
    EntityKind,
    FieldType,
    Leaf,
    ParameterAllocator,
    Specialized,
)
from biograph_query.exceptions import InvalidComparator, MalformedCriteria
from biograph_query.strategies import (
    ContainmentStrategy,
    PathStrategy,
    StrategyKind,
    build_strategy,
)

SUBJECT_COLUMNS = {"code": "code", "sex": "sex"}


def leaf(name="mass", field_type=FieldType.FLOAT, comparator="=", value="1.5", **kw):
    return Leaf(
        field_name=name,
        field_type=field_type,
        comparator=comparator,
        field_value=value,
        **kw,
    )


@pytest.fixture
def path() -> PathStrategy:
    return PathStrategy()


@pytest.fixture
def containment() -> ContainmentStrategy:
    return ContainmentStrategy()


# -- Factory -----------------------------------------------------------------


def test_build_strategy():
    assert isinstance(build_strategy("path"), PathStrategy)
    assert isinstance(build_strategy(StrategyKind.CONTAINMENT), ContainmentStrategy)
    assert build_strategy().kind is StrategyKind.CONTAINMENT


def test_build_strategy_unknown():
    with pytest.raises(ValueError):
        build_strategy("regex")


# -- Path: scalar attributes -------------------------------------------------


def test_path_scalar_with_unit(path, allocator: ParameterAllocator):
    fragment = path.compile_leaf(
        leaf(comparator=">=", field_unit="M☉"), allocator, "d."
    )
    assert fragment == (
        "(d.metadata->$1->>'value')::float >= $2 "
        "AND (d.metadata->$1->>'unit')::text LIKE $3"
    )
    assert allocator.parameters == ["mass", "1.5", "M☉"]


def test_path_scalar_without_prefix(path, allocator: ParameterAllocator):
    fragment = path.compile_leaf(
        leaf("Diagnosis", FieldType.TEXT, "=", "neuroblastoma"), allocator
    )
    assert fragment == "(metadata->$1->>'value')::text = $2"


def test_path_list_membership(path, allocator: ParameterAllocator):
    fragment = path.compile_leaf(
        leaf("Type", FieldType.TEXT, "NOT IN", ("a", "b", "c"), is_list=True),
        allocator,
        "d.",
    )
    assert fragment == "(d.metadata->$1->>'value')::text NOT IN ($2,$3,$4)"
    assert allocator.parameters == ["Type", "a", "b", "c"]


def test_path_unit_list(path, allocator: ParameterAllocator):
    fragment = path.compile_leaf(
        leaf(comparator="<", value=10, field_unit=("kg", "g")), allocator, "d."
    )
    assert fragment.endswith("AND (d.metadata->$1->>'unit')::text IN ($3,$4)")
    assert allocator.parameters == ["mass", 10, "kg", "g"]


def test_path_case_insensitive(path, allocator: ParameterAllocator):
    path.compile_leaf(
        leaf("name", FieldType.TEXT, "LIKE", "ceph%", case_insensitive=True),
        allocator,
    )
    assert allocator.parameters == ["name", "CEPH%"]


def test_path_list_with_scalar_comparator(path, allocator: ParameterAllocator):
    with pytest.raises(MalformedCriteria, match="IN or NOT IN"):
        path.compile_leaf(
            leaf(comparator="=", value=("a", "b"), is_list=True), allocator
        )


def test_path_any_of_on_scalar(path, allocator: ParameterAllocator):
    with pytest.raises(MalformedCriteria, match="loop attributes"):
        path.compile_leaf(leaf(comparator="?|", value=("a",), is_list=True), allocator)


def test_invalid_comparator_binds_nothing(path, allocator: ParameterAllocator):
    with pytest.raises(InvalidComparator):
        path.compile_leaf(leaf(comparator=">= 0; DROP table data;"), allocator, "d.")
    assert allocator.parameters == []
    assert allocator.position == 0


# -- Path: loop attributes ---------------------------------------------------


def test_path_loop_pattern(path, allocator: ParameterAllocator):
    fragment = path.compile_leaf(
        leaf("band", FieldType.TEXT, "LIKE", "U%", is_in_loop=True), allocator, "d."
    )
    assert fragment == (
        "EXISTS (SELECT 1 FROM jsonb_array_elements_text(d.metadata->$1->'values') "
        "WHERE value LIKE $2)"
    )


def test_path_loop_range_casts_elements(path, allocator: ParameterAllocator):
    fragment = path.compile_leaf(
        leaf("count", FieldType.INTEGER, ">=", 3, is_in_loop=True), allocator
    )
    assert fragment == (
        "EXISTS (SELECT 1 FROM jsonb_array_elements_text(metadata->$1->'values') "
        "WHERE value::integer >= $2)"
    )


def test_path_loop_inequality(path, allocator: ParameterAllocator):
    fragment = path.compile_leaf(
        leaf("band", FieldType.TEXT, "<>", "U", is_in_loop=True), allocator
    )
    assert fragment.startswith("NOT EXISTS (")
    assert fragment.endswith("WHERE value = $2)")


def test_path_loop_membership(path, allocator: ParameterAllocator):
    fragment = path.compile_leaf(
        leaf("band", FieldType.TEXT, "IN", ("U", "B"), is_list=True, is_in_loop=True),
        allocator,
    )
    assert fragment.endswith("WHERE value IN ($2,$3))")
    assert allocator.parameters == ["band", "U", "B"]


def test_path_loop_any_of(path, allocator: ParameterAllocator):
    fragment = path.compile_leaf(
        leaf("band", FieldType.TEXT, "?|", ("U", "B"), is_list=True, is_in_loop=True),
        allocator,
        "d.",
    )
    assert fragment == "(d.metadata->$1->'values' ?| ARRAY[$2,$3])"
    assert allocator.parameters == ["band", "U", "B"]


def test_path_loop_list_equality(path, allocator: ParameterAllocator):
    fragment = path.compile_leaf(
        leaf("band", FieldType.TEXT, "=", ("U", "B"), is_list=True, is_in_loop=True),
        allocator,
    )
    assert fragment.endswith("WHERE value = $2 OR value = $3)")
    assert allocator.parameters == ["band", "U", "B"]


def test_path_loop_list_inequality(path, allocator: ParameterAllocator):
    fragment = path.compile_leaf(
        leaf("band", FieldType.TEXT, "<>", ("U", "B"), is_list=True, is_in_loop=True),
        allocator,
    )
    assert fragment.startswith("NOT EXISTS (")
    assert fragment.endswith("WHERE value = $2 OR value = $3)")


# -- Containment: scalar attributes ------------------------------------------


def test_containment_equality_with_unit(containment, allocator: ParameterAllocator):
    fragment = containment.compile_leaf(leaf(field_unit="M☉"), allocator, "d.")
    assert fragment == "d.metadata @> $1 AND d.metadata @> $2"
    assert allocator.parameters == [
        '{"mass":{"value":1.5}}',
        '{"mass":{"unit":"M☉"}}',
    ]


def test_containment_inequality_case_insensitive(
    containment, allocator: ParameterAllocator
):
    fragment = containment.compile_leaf(
        leaf("constellation", FieldType.TEXT, "<>", "cepheus", case_insensitive=True),
        allocator,
    )
    assert fragment == "NOT metadata @> $1"
    assert allocator.parameters == ['{"constellation":{"value":"CEPHEUS"}}']


@pytest.mark.parametrize(
    ("field_type", "value", "expected"),
    [
        (FieldType.INTEGER, "12", '{"f":{"value":12}}'),
        (FieldType.FLOAT, 2, '{"f":{"value":2.0}}'),
        (FieldType.BOOLEAN, "true", '{"f":{"value":true}}'),
        (FieldType.BOOLEAN, "False", '{"f":{"value":false}}'),
        (FieldType.DATE, "2020-01-31", '{"f":{"value":"2020-01-31"}}'),
    ],
)
def test_containment_coerces_values(
    containment, allocator: ParameterAllocator, field_type, value, expected
):
    containment.compile_leaf(leaf("f", field_type, "=", value), allocator)
    assert allocator.parameters == [expected]


def test_containment_rejects_uncoercible_value(
    containment, allocator: ParameterAllocator
):
    with pytest.raises(MalformedCriteria, match="not a valid integer"):
        containment.compile_leaf(leaf("f", FieldType.INTEGER, "=", "abc"), allocator)


@pytest.mark.parametrize("comparator", [">=", "<", "ILIKE", "NOT LIKE"])
def test_containment_falls_back_to_path(containment, comparator):
    expected_allocator = ParameterAllocator()
    expected = PathStrategy().compile_leaf(
        leaf("f", FieldType.TEXT, comparator, "x"), expected_allocator, "d."
    )
    allocator = ParameterAllocator()
    fragment = containment.compile_leaf(
        leaf("f", FieldType.TEXT, comparator, "x"), allocator, "d."
    )
    assert fragment == expected
    assert allocator.parameters == expected_allocator.parameters


def test_containment_membership_falls_back(containment, allocator: ParameterAllocator):
    fragment = containment.compile_leaf(
        leaf("f", FieldType.INTEGER, "IN", (1, 2), is_list=True), allocator
    )
    assert fragment == "(metadata->$1->>'value')::integer IN ($2,$3)"


def test_containment_unit_list(containment, allocator: ParameterAllocator):
    fragment = containment.compile_leaf(
        leaf(field_unit=("kg", "g")), allocator, "d."
    )
    assert fragment == (
        "d.metadata @> $1 AND (d.metadata->$2->>'unit')::text IN ($3,$4)"
    )
    assert allocator.parameters == ['{"mass":{"value":1.5}}', "mass", "kg", "g"]


# -- Containment: loop attributes --------------------------------------------


def test_containment_loop_equality(containment, allocator: ParameterAllocator):
    fragment = containment.compile_leaf(
        leaf("band", FieldType.TEXT, "=", "u", is_in_loop=True, case_insensitive=True),
        allocator,
        "d.",
    )
    assert fragment == "d.metadata @> $1"
    assert allocator.parameters == ['{"band":{"values":["U"]}}']


def test_containment_loop_all_of(containment, allocator: ParameterAllocator):
    fragment = containment.compile_leaf(
        leaf(
            "counts",
            FieldType.INTEGER,
            "?&",
            ("1", "2"),
            is_list=True,
            is_in_loop=True,
        ),
        allocator,
    )
    assert fragment == "metadata @> $1"
    assert allocator.parameters == ['{"counts":{"values":[1,2]}}']


def test_containment_loop_inequality(containment, allocator: ParameterAllocator):
    fragment = containment.compile_leaf(
        leaf("band", FieldType.TEXT, "<>", "U", is_in_loop=True), allocator
    )
    assert fragment == "NOT metadata @> $1"


def test_containment_loop_any_of(containment, allocator: ParameterAllocator):
    fragment = containment.compile_leaf(
        leaf("band", FieldType.TEXT, "?|", ("U", "B"), is_list=True, is_in_loop=True),
        allocator,
        "d.",
    )
    assert fragment == "(d.metadata->$1->'values' ?| ARRAY[$2,$3])"
    assert allocator.parameters == ["band", "U", "B"]


def test_containment_loop_pattern_uses_prefix(
    containment, allocator: ParameterAllocator
):
    fragment = containment.compile_leaf(
        leaf("band", FieldType.TEXT, "ILIKE", "%u%", is_in_loop=True), allocator
    )
    assert fragment == (
        "EXISTS (SELECT 1 FROM jsonb_array_elements_text(metadata->$1->'values') "
        "WHERE value ILIKE $2)"
    )


# -- Specialized -------------------------------------------------------------


@pytest.mark.parametrize("strategy", [PathStrategy(), ContainmentStrategy()])
def test_specialized_conditions(strategy, allocator: ParameterAllocator):
    node = Specialized(
        kind=EntityKind.SUBJECT,
        conditions=(
            Condition("code", "PAT%", "LIKE"),
            Condition("sex", ("F", "M")),
        ),
    )
    fragment = strategy.compile_specialized(node, allocator, "d.", SUBJECT_COLUMNS)
    assert fragment == "d.code LIKE $1 AND d.sex IN ($2,$3)"
    assert allocator.parameters == ["PAT%", "F", "M"]


def test_specialized_camel_case_property(path, allocator: ParameterAllocator):
    node = Specialized(
        kind=EntityKind.SAMPLE, conditions=(Condition("biobankCode", "BB-1"),)
    )
    fragment = path.compile_specialized(
        node, allocator, "", {"biobank": "biobank", "biobankCode": "biobank_code"}
    )
    assert fragment == "biobank_code = $1"


def test_specialized_without_conditions(path, allocator: ParameterAllocator):
    node = Specialized(kind=EntityKind.SUBJECT, conditions=())
    assert path.compile_specialized(node, allocator, "d.", SUBJECT_COLUMNS) is None
    assert allocator.position == 0


def test_specialized_unknown_property(path, allocator: ParameterAllocator):
    node = Specialized(
        kind=EntityKind.SUBJECT, conditions=(Condition("nickname", "x"),)
    )
    with pytest.raises(MalformedCriteria, match="Unknown property"):
        path.compile_specialized(node, allocator, "d.", SUBJECT_COLUMNS)


# -- List values -------------------------------------------------------------


@pytest.mark.parametrize("strategy", [PathStrategy(), ContainmentStrategy()])
@pytest.mark.parametrize("comparator", ["LIKE", "ILIKE", "NOT LIKE", ">"])
def test_loop_list_binds_every_value(strategy, comparator):
    allocator = ParameterAllocator()
    fragment = strategy.compile_leaf(
        leaf(
            "g",
            FieldType.TEXT,
            comparator,
            ("A%", "B%", "C%"),
            is_list=True,
            is_in_loop=True,
        ),
        allocator,
    )
    assert fragment == (
        "EXISTS (SELECT 1 FROM jsonb_array_elements_text(metadata->$1->'values') "
        f"WHERE value {comparator} $2 OR value {comparator} $3 "
        f"OR value {comparator} $4)"
    )
    assert allocator.parameters == ["g", "A%", "B%", "C%"]


@pytest.mark.parametrize("strategy", [PathStrategy(), ContainmentStrategy()])
@pytest.mark.parametrize(
    "kwargs",
    [
        {"comparator": "IN", "is_list": True},
        {"comparator": "NOT IN", "is_list": True},
        {"comparator": "=", "is_list": True, "is_in_loop": True},
        {"comparator": "<>", "is_list": True, "is_in_loop": True},
        {"comparator": "?|", "is_list": True, "is_in_loop": True},
        {"comparator": "?&", "is_list": True, "is_in_loop": True},
    ],
)
def test_list_values_are_never_bound_as_one_parameter(strategy, kwargs):
    allocator = ParameterAllocator()
    strategy.compile_leaf(
        leaf("t", FieldType.TEXT, value=("x", "y"), **kwargs), allocator
    )
    assert not any(isinstance(p, list | tuple) for p in allocator.parameters)


@pytest.mark.parametrize("strategy", [PathStrategy(), ContainmentStrategy()])
def test_unflagged_list_value_is_rejected(strategy):
    with pytest.raises(MalformedCriteria, match="requires 'isList'"):
        strategy.compile_leaf(
            leaf("t", FieldType.TEXT, "=", ["x", "y"]), ParameterAllocator()
        )
