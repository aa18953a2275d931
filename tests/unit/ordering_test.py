from dataclasses import dataclass

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table, select

from multirepo.ordering import (
    SortKey,
    _entity_sort_keys,
    apply_order,
    order_clause,
    order_terms,
    render_order_by,
    sort_keys,
)
from multirepo.schemas.paging import Direction, OrderTerm, order_spec

metadata = MetaData()
people = Table(
    "people",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String),
    Column("age", Integer),
)


@dataclass
class Person:
    name: str
    age: int | None
    city: str = ""


PEOPLE = [
    Person("carol", 30, "Oslo"),
    Person("alice", 25, "Rome"),
    Person("bob", 30, "Lima"),
    Person("dave", 25, "Oslo"),
    Person("erin", 41, "Rome"),
]


def _sql(query) -> str:
    return str(query.compile(compile_kwargs={"literal_binds": True}))


def assert_ordered(items, fields, directions):
    """Order law: each consecutive pair compares on the first differing key per its direction."""
    for left, right in zip(items, items[1:], strict=False):
        for field, direction in zip(fields, directions, strict=True):
            a, b = getattr(left, field), getattr(right, field)
            if a == b:
                continue
            assert (a < b) if direction is Direction.ASCENDING else (a > b)
            break


class TestInMemoryOrdering:
    def test_single_key_ascending_by_default(self):
        ordered = apply_order(PEOPLE, "age")
        assert [p.age for p in ordered] == [25, 25, 30, 30, 41]

    def test_ties_are_broken_by_the_next_key_only(self):
        ordered = apply_order(PEOPLE, ("age", "name"), [Direction.DESCENDING, Direction.ASCENDING])
        assert [p.name for p in ordered] == ["erin", "bob", "carol", "alice", "dave"]
        assert_ordered(ordered, ["age", "name"], [Direction.DESCENDING, Direction.ASCENDING])

    def test_secondary_descending(self):
        ordered = apply_order(PEOPLE, ("age", "name"), ["asc", "desc"])
        assert [p.name for p in ordered] == ["dave", "alice", "carol", "bob", "erin"]

    def test_missing_directions_default_to_ascending(self):
        ordered = apply_order(PEOPLE, ("city", "age", "name"), [Direction.DESCENDING])
        assert [p.name for p in ordered] == ["alice", "erin", "dave", "carol", "bob"]

    def test_extra_directions_are_ignored(self):
        ordered = apply_order(PEOPLE, "name", ["desc", "asc", "asc"])
        assert [p.name for p in ordered] == ["erin", "dave", "carol", "bob", "alice"]

    def test_zero_keys_is_identity(self):
        assert apply_order(PEOPLE, ()) is PEOPLE
        assert apply_order(PEOPLE, None) is PEOPLE

    def test_returns_a_new_list(self):
        ordered = apply_order(PEOPLE, "name")
        assert ordered is not PEOPLE
        assert [p.name for p in PEOPLE][0] == "carol"

    def test_none_sorts_first(self):
        items = [Person("x", 3), Person("y", None), Person("z", 1)]
        assert [p.name for p in apply_order(items, "age")] == ["y", "z", "x"]

    def test_none_sorts_first_descending(self):
        rows = [{"a": 2}, {"a": None}, {"a": 1}]
        assert apply_order(rows, "a", ["desc"]) == [{"a": None}, {"a": 2}, {"a": 1}]

    def test_callable_key(self):
        ordered = apply_order(PEOPLE, (lambda p: p.city, "name"))
        assert [p.name for p in ordered] == ["bob", "carol", "dave", "alice", "erin"]

    def test_mapping_rows_match_case_insensitively(self):
        rows = [{"Age": 2, "Name": "b"}, {"Age": 1, "Name": "a"}]
        assert apply_order(rows, "age") == [{"Age": 1, "Name": "a"}, {"Age": 2, "Name": "b"}]

    def test_unsupported_key(self):
        with pytest.raises(TypeError):
            apply_order(PEOPLE, 42)

    def test_empty_field_name(self):
        with pytest.raises(ValueError):
            apply_order(PEOPLE, " ")


class TestSortKeys:
    def test_resolves_fields_case_insensitively(self):
        keys = sort_keys(Person, "AGE", "Name", directions=[Direction.DESCENDING])
        assert [k.name for k in keys] == ["age", "name"]
        assert [k.direction for k in keys] == [Direction.DESCENDING, Direction.ASCENDING]

    def test_resolution_is_cached_per_type(self):
        assert _entity_sort_keys(Person, ("age",)) is _entity_sort_keys(Person, ("age",))

    def test_unknown_field(self):
        with pytest.raises(ValueError, match="no field matching"):
            sort_keys(Person, "salary")

    def test_prebuilt_keys_keep_their_direction(self):
        keys = sort_keys(Person, "age", "name", directions=["desc", "desc"])
        ordered = apply_order(PEOPLE, keys)
        assert [p.name for p in ordered] == ["erin", "carol", "bob", "dave", "alice"]

    def test_unbound_key_has_no_clause(self):
        key = SortKey(name="age", accessor=lambda p: p.age)
        with pytest.raises(ValueError, match="not bound"):
            key.clause()


class TestSelectOrdering:
    def test_appends_order_by_in_priority_order(self):
        query = apply_order(select(people), ("age", "name"), [Direction.DESCENDING])
        assert _sql(query).endswith("ORDER BY people.age DESC, people.name ASC")

    def test_column_keys(self):
        query = apply_order(select(people), (people.c.name,), ["desc"])
        assert _sql(query).endswith("ORDER BY people.name DESC")

    def test_field_names_match_case_insensitively(self):
        query = apply_order(select(people), "AGE")
        assert _sql(query).endswith("ORDER BY people.age ASC")

    def test_zero_keys_leaves_query_unordered(self):
        query = select(people)
        assert apply_order(query, ()) is query
        assert "ORDER BY" not in _sql(apply_order(query, ()))

    def test_unknown_column(self):
        with pytest.raises(ValueError, match="no column matching"):
            apply_order(select(people), "salary")


class TestOrderText:
    def test_render_order_by(self):
        assert render_order_by(order_spec(("age", "desc"), "name")) == "ORDER BY age DESC, name ASC"

    def test_render_empty_spec(self):
        assert render_order_by(()) == ""

    def test_order_terms_from_keys(self):
        spec = order_terms(("age", people.c.name), ["desc"])
        assert spec == (OrderTerm("age", Direction.DESCENDING), OrderTerm("name", Direction.ASCENDING))

    def test_order_terms_from_labelled_column(self):
        assert order_terms(people.c.age.label("years"), ["desc"]) == (OrderTerm("years", Direction.DESCENDING),)

    def test_order_terms_rejects_unnamed_expression(self):
        with pytest.raises(TypeError, match="no name"):
            order_terms(people.c.age + 1)

    @pytest.mark.parametrize(
        "order_field,ascending,expected",
        [
            ("age", True, "ORDER BY age ASC"),
            ("age", False, "ORDER BY age DESC"),
            ("  age  ", True, "ORDER BY age ASC"),
            ("age DESC, name", True, "ORDER BY age DESC, name"),
            ("age asc", False, "ORDER BY age asc"),
            ("/* natural */ id", False, "ORDER BY /* natural */ id"),
            (None, True, ""),
            ("", False, ""),
            ("   ", True, ""),
        ],
    )
    def test_order_clause(self, order_field, ascending, expected):
        assert order_clause(order_field, ascending) == expected

    def test_order_clause_from_spec_ignores_ascending(self):
        assert order_clause(order_spec(("age", "desc")), ascending=True) == "ORDER BY age DESC"

    def test_description_is_not_a_direction(self):
        assert order_clause("description") == "ORDER BY description ASC"
