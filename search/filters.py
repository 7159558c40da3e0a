"""Compiles SearchFilters into parameterized SQL constraints.

Filter values never appear in SQL text; every value is a bound ``?``
parameter. Column and table names come from the fixed mappings below.
The document table is always aliased ``d``.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence, Tuple

from .models import SearchFilters

# filter field -> code_metadata column holding a JSON array
FACET_COLUMNS = {
    'has_runes': 'runes',
    'has_functions': 'functions',
    'has_components': 'components',
}


@dataclass(frozen=True)
class ConstraintFragment:
    """Zero or more AND-combined SQL conditions with their bound parameters."""
    clauses: Tuple[str, ...] = ()
    params: Tuple[Any, ...] = ()

    def is_empty(self) -> bool:
        return not self.clauses

    def sql(self) -> str:
        """Conditions joined with AND, or ``1=1`` for the neutral fragment."""
        if not self.clauses:
            return "1=1"
        return " AND ".join(f"({clause})" for clause in self.clauses)

    def and_suffix(self) -> str:
        """Text to append to an existing WHERE clause."""
        return f" AND {self.sql()}" if self.clauses else ""


NEUTRAL = ConstraintFragment()


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


def _values(items: Optional[Iterable[Any]]) -> Tuple[Any, ...]:
    if not items:
        return ()
    return tuple(getattr(item, 'value', item) for item in items)


def _json_array_contains(column: str, values: Sequence[Any]) -> str:
    return (
        f"EXISTS (SELECT 1 FROM json_each({column}) j "
        f"WHERE j.value IN ({_placeholders(len(values))}))"
    )


def compile_filters(filters: Optional[SearchFilters] = None) -> ConstraintFragment:
    """Translate filters into a constraint fragment.

    Args:
        filters: Structured filters, or None

    Returns:
        The neutral fragment when nothing is set, otherwise one clause per
        non-empty field.
    """
    if filters is None or filters.is_empty():
        return NEUTRAL

    clauses = []
    params = []

    if filters.difficulty:
        clauses.append("d.difficulty = ?")
        params.append(filters.difficulty.value)

    tags = _values(filters.tags)
    if tags:
        clauses.append(_json_array_contains("d.tags", tags))
        params.extend(tags)

    concepts = _values(filters.concepts)
    if concepts:
        clauses.append(
            f"d.concept IN ({_placeholders(len(concepts))}) OR "
            + _json_array_contains("d.related_concepts", concepts)
        )
        params.extend(concepts)
        params.extend(concepts)

    categories = _values(filters.category)
    if categories:
        clauses.append(
            "EXISTS (SELECT 1 FROM code_metadata cm WHERE cm.doc_id = d.id "
            f"AND cm.category IN ({_placeholders(len(categories))}))"
        )
        params.extend(categories)

    for field_name, column in FACET_COLUMNS.items():
        values = _values(getattr(filters, field_name))
        if not values:
            continue
        clauses.append(
            f"EXISTS (SELECT 1 FROM code_metadata cm, json_each(cm.{column}) f "
            f"WHERE cm.doc_id = d.id AND f.value IN ({_placeholders(len(values))}))"
        )
        params.extend(values)

    return ConstraintFragment(tuple(clauses), tuple(params))
