"""
Where-clause evaluation for the reference storage backends.

A where clause maps field names either to a literal (equality) or to an
operator mapping such as ``{"in": [1, 2]}``. Several operators on one field
are combined with AND, as are several fields.
"""

import logging
from typing import Dict, Any, List, Optional, Union


logger = logging.getLogger(__name__)

SortSpec = Union[str, List[str], Dict[str, int], None]


class FilterEvaluator:
    """
    Evaluates where clauses against plain record dictionaries.

    Supported operators: eq, ne, gt, gte, lt, lte, in, not_in, exists.
    Nested fields are addressed with dot notation (``author.name``).
    """

    def __init__(self):
        self.operators = {
            "eq": self._op_equals,
            "ne": self._op_not_equals,
            "gt": self._op_greater_than,
            "gte": self._op_greater_than_equal,
            "lt": self._op_less_than,
            "lte": self._op_less_than_equal,
            "in": self._op_in,
            "not_in": self._op_not_in,
            "exists": self._op_exists,
        }

    def matches(self, record: Dict[str, Any], where: Optional[Dict[str, Any]]) -> bool:
        """Return True when the record satisfies every clause of ``where``."""
        if not where:
            return True

        for field_path, condition in where.items():
            field_value = self._extract_field_value(record, field_path)

            if isinstance(condition, dict):
                for operator, filter_value in condition.items():
                    operator_func = self.operators.get(operator)
                    if operator_func is None:
                        raise ValueError(f"Unknown filter operator: {operator}")
                    if not operator_func(field_value, filter_value):
                        return False
            elif field_value != condition:
                return False

        return True

    def apply(
        self,
        records: List[Dict[str, Any]],
        where: Optional[Dict[str, Any]] = None,
        sort: SortSpec = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Filter, sort and truncate ``records`` without mutating them."""
        filtered = [record for record in records if self.matches(record, where)]

        for field_path, descending in reversed(normalize_sort(sort)):
            filtered.sort(
                key=lambda record: _sort_key(self._extract_field_value(record, field_path)),
                reverse=descending,
            )

        if limit is not None:
            filtered = filtered[: max(int(limit), 0)]

        logger.debug(f"Filtered {len(records)} records to {len(filtered)}")
        return filtered

    def _extract_field_value(self, record: Dict[str, Any], field_path: str) -> Any:
        current_value: Any = record
        for part in field_path.split("."):
            if isinstance(current_value, dict) and part in current_value:
                current_value = current_value[part]
            else:
                return None
        return current_value

    # Operator implementations
    def _op_equals(self, field_value: Any, filter_value: Any) -> bool:
        return field_value == filter_value

    def _op_not_equals(self, field_value: Any, filter_value: Any) -> bool:
        return field_value != filter_value

    def _op_greater_than(self, field_value: Any, filter_value: Any) -> bool:
        try:
            return field_value > filter_value
        except TypeError:
            return False

    def _op_greater_than_equal(self, field_value: Any, filter_value: Any) -> bool:
        try:
            return field_value >= filter_value
        except TypeError:
            return False

    def _op_less_than(self, field_value: Any, filter_value: Any) -> bool:
        try:
            return field_value < filter_value
        except TypeError:
            return False

    def _op_less_than_equal(self, field_value: Any, filter_value: Any) -> bool:
        try:
            return field_value <= filter_value
        except TypeError:
            return False

    def _op_in(self, field_value: Any, filter_value: Any) -> bool:
        if not isinstance(filter_value, (list, tuple, set)):
            return field_value == filter_value
        return field_value in filter_value

    def _op_not_in(self, field_value: Any, filter_value: Any) -> bool:
        if not isinstance(filter_value, (list, tuple, set)):
            return field_value != filter_value
        return field_value not in filter_value

    def _op_exists(self, field_value: Any, filter_value: Any) -> bool:
        if filter_value:
            return field_value is not None
        return field_value is None


def normalize_sort(sort: SortSpec) -> List[tuple]:
    """
    Turn a sort spec into ``[(field, descending), ...]``.

    Accepts ``"field"``, ``"-field"``, a list of those, or a mapping of
    field to ``1`` / ``-1``.
    """
    if not sort:
        return []
    if isinstance(sort, dict):
        return [(field_path, direction < 0) for field_path, direction in sort.items()]
    if isinstance(sort, str):
        sort = [sort]
    return [
        (item[1:], True) if item.startswith("-") else (item, False)
        for item in sort
    ]


def _sort_key(value: Any) -> tuple:
    # None sorts first; mixed types compare by type name
    if value is None:
        return (0, "", "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (1, "", value)
    return (2, type(value).__name__, str(value))


_default_evaluator = FilterEvaluator()


def apply_filter(
    records: List[Dict[str, Any]],
    where: Optional[Dict[str, Any]] = None,
    sort: SortSpec = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Apply where/sort/limit to records using the shared evaluator."""
    return _default_evaluator.apply(records, where, sort, limit)
