"""Compile filter predicates, search and status terms into a filter expression.

Compilation is pure: the same QueryState always yields the same expression,
with fragments in a fixed order (status, search, predicates in list order)
so that equal states produce equal cache keys and identical backend queries.
"""

import logging
import re
from typing import Any, List, Optional, Tuple

from ..models import (
    ConditionOperator,
    EntityDefinition,
    FilterCondition,
    FilterExpression,
    FilterGroup,
    FilterOperator,
    FilterPredicate,
    LogicalOperator,
    QueryState,
)
from ..models.filter_models import UNARY_OPERATORS, Scalar

logger = logging.getLogger(__name__)


# Direct operator translations, 'between' and the pattern operators are built separately
_COMPARISONS = {
    FilterOperator.EQUALS: ConditionOperator.EQ,
    FilterOperator.GREATER_THAN: ConditionOperator.GT,
    FilterOperator.LESS_THAN: ConditionOperator.LT,
    FilterOperator.GREATER_EQUAL: ConditionOperator.GTE,
    FilterOperator.LESS_EQUAL: ConditionOperator.LTE,
    FilterOperator.AFTER: ConditionOperator.GT,
    FilterOperator.BEFORE: ConditionOperator.LT,
}

_PATTERNS = {
    FilterOperator.CONTAINS: (ConditionOperator.ILIKE, "%{}%"),
    FilterOperator.NOT_CONTAINS: (ConditionOperator.NOT_ILIKE, "%{}%"),
    FilterOperator.STARTS_WITH: (ConditionOperator.ILIKE, "{}%"),
    FilterOperator.ENDS_WITH: (ConditionOperator.ILIKE, "%{}"),
}


def is_absent(value: Optional[Scalar]) -> bool:
    """A value is absent when it is None or a blank string. Zero is a value."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def is_active(predicate: FilterPredicate) -> bool:
    """Whether a predicate has every value its operator requires."""
    if predicate.operator in UNARY_OPERATORS:
        return True
    if predicate.operator == FilterOperator.BETWEEN:
        return not is_absent(predicate.value) and not is_absent(predicate.value2)
    return not is_absent(predicate.value)


def compile_predicate(predicate: FilterPredicate) -> Optional[FilterExpression]:
    """
    Translate one predicate into an expression fragment.

    Returns None for inactive predicates so that half-edited filter rows
    never reach the backend.
    """
    if not is_active(predicate):
        return None

    field = predicate.field
    operator = predicate.operator

    if operator == FilterOperator.IS_EMPTY:
        return FilterCondition(field=field, operator=ConditionOperator.IS_NULL)
    if operator == FilterOperator.IS_NOT_EMPTY:
        return FilterCondition(field=field, operator=ConditionOperator.NOT_NULL)

    if operator == FilterOperator.BETWEEN:
        return FilterGroup(
            operator=LogicalOperator.AND,
            value=[
                FilterCondition(field=field, operator=ConditionOperator.GTE, value=predicate.value),
                FilterCondition(field=field, operator=ConditionOperator.LTE, value=predicate.value2),
            ],
        )

    if operator in _PATTERNS:
        condition_operator, pattern = _PATTERNS[operator]
        return FilterCondition(
            field=field,
            operator=condition_operator,
            value=pattern.format(str(predicate.value).strip()),
        )

    return FilterCondition(field=field, operator=_COMPARISONS[operator], value=predicate.value)


def compile_predicates(predicates: List[FilterPredicate]) -> List[FilterExpression]:
    """Compile every active predicate, keeping list order."""
    fragments = []
    for predicate in predicates:
        fragment = compile_predicate(predicate)
        if fragment is not None:
            fragments.append(fragment)
    return fragments


def compile_search(search_term: str, search_fields: List[str]) -> Optional[FilterGroup]:
    """OR a case-insensitive substring match across the entity's search fields."""
    term = (search_term or "").strip()
    if not term or not search_fields:
        return None
    return FilterGroup(
        operator=LogicalOperator.OR,
        value=[
            FilterCondition(field=field, operator=ConditionOperator.ILIKE, value=f"%{term}%")
            for field in search_fields
        ],
    )


def compile_status(entity: EntityDefinition, status_filter: str) -> Optional[FilterCondition]:
    """Status equality, skipped for 'all' and for entities without a status column."""
    if not entity.status_field or not status_filter or status_filter == "all":
        return None
    return FilterCondition(field=entity.status_field, operator=ConditionOperator.EQ, value=status_filter)


def compile_query(entity: EntityDefinition, state: QueryState) -> Optional[FilterGroup]:
    """
    Fold status, search and predicate fragments into one conjunction.

    Args:
        entity: The entity whose search fields and status column apply
        state: The page's query state

    Returns:
        An AND group of the active fragments, or None if nothing is active
    """
    fragments: List[FilterExpression] = []

    status_fragment = compile_status(entity, state.status_filter)
    if status_fragment is not None:
        fragments.append(status_fragment)

    search_fragment = compile_search(state.search_term, entity.search_fields)
    if search_fragment is not None:
        fragments.append(search_fragment)

    fragments.extend(compile_predicates(state.predicates))

    if not fragments:
        return None

    logger.debug(f"Compiled {len(fragments)} fragments for {entity.name}")
    return FilterGroup(operator=LogicalOperator.AND, value=fragments)


# ---------------------------------------------------------------------------
# PostgREST rendering
# ---------------------------------------------------------------------------

_POSTGREST_OPERATORS = {
    ConditionOperator.EQ: "eq",
    ConditionOperator.GT: "gt",
    ConditionOperator.GTE: "gte",
    ConditionOperator.LT: "lt",
    ConditionOperator.LTE: "lte",
    ConditionOperator.ILIKE: "ilike",
    ConditionOperator.NOT_ILIKE: "not.ilike",
    ConditionOperator.IS_NULL: "is",
    ConditionOperator.NOT_NULL: "not.is",
}

_RESERVED = re.compile(r'[,.:()"\\\s]')


def format_value(value: Any, quote: bool = False) -> str:
    """Format a value for a PostgREST filter, quoting reserved characters inside logic trees."""
    text = str(value)
    if quote and _RESERVED.search(text):
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return text


def _condition_argument(condition: FilterCondition, quote: bool) -> str:
    operator = _POSTGREST_OPERATORS[condition.operator]
    if condition.operator in (ConditionOperator.IS_NULL, ConditionOperator.NOT_NULL):
        return f"{operator}.null"
    value = condition.value
    if condition.operator in (ConditionOperator.ILIKE, ConditionOperator.NOT_ILIKE):
        value = str(value).replace("%", "*")
    return f"{operator}.{format_value(value, quote=quote)}"


def _render_inline(expression: FilterExpression) -> str:
    if isinstance(expression, FilterCondition):
        return f"{expression.field}.{_condition_argument(expression, quote=True)}"
    members = ",".join(_render_inline(member) for member in expression.value)
    return f"{expression.operator.value}({members})"


def to_postgrest_params(expression: Optional[FilterExpression]) -> List[Tuple[str, str]]:
    """
    Render an expression as PostgREST query parameters.

    A top-level AND becomes one parameter per member (PostgREST ANDs
    repeated parameters); nested groups become or=(...)/and=(...) trees.
    """
    if expression is None:
        return []
    if isinstance(expression, FilterCondition):
        return [(expression.field, _condition_argument(expression, quote=False))]
    if expression.operator == LogicalOperator.AND:
        params: List[Tuple[str, str]] = []
        for member in expression.value:
            params.extend(to_postgrest_params(member))
        return params
    members = ",".join(_render_inline(member) for member in expression.value)
    return [(expression.operator.value, f"({members})")]


# ---------------------------------------------------------------------------
# Local evaluation
# ---------------------------------------------------------------------------

def _pattern_matches(pattern: str, value: Any) -> bool:
    regex = "".join(
        ".*" if char == "%" else "." if char == "_" else re.escape(char)
        for char in pattern
    )
    return re.fullmatch(regex, str(value), flags=re.IGNORECASE | re.DOTALL) is not None


def _comparable(left: Any, right: Any) -> Tuple[Any, Any]:
    """Compare numerically when either side is a number, otherwise as text."""
    if isinstance(left, (int, float)) or isinstance(right, (int, float)):
        try:
            return float(left), float(right)
        except (TypeError, ValueError):
            pass
    return str(left), str(right)


def _evaluate_condition(condition: FilterCondition, row: dict) -> bool:
    actual = row.get(condition.field)
    operator = condition.operator

    if operator == ConditionOperator.IS_NULL:
        return actual is None
    if operator == ConditionOperator.NOT_NULL:
        return actual is not None
    if actual is None:
        # SQL semantics: comparisons against NULL are never true
        return False
    if operator == ConditionOperator.ILIKE:
        return _pattern_matches(str(condition.value), actual)
    if operator == ConditionOperator.NOT_ILIKE:
        return not _pattern_matches(str(condition.value), actual)

    left, right = _comparable(actual, condition.value)
    if operator == ConditionOperator.EQ:
        return left == right
    if operator == ConditionOperator.GT:
        return left > right
    if operator == ConditionOperator.GTE:
        return left >= right
    if operator == ConditionOperator.LT:
        return left < right
    return left <= right


def evaluate(expression: Optional[FilterExpression], row: dict) -> bool:
    """Evaluate an expression against an in-memory row. None matches everything."""
    if expression is None:
        return True
    if isinstance(expression, FilterCondition):
        return _evaluate_condition(expression, row)
    results = (evaluate(member, row) for member in expression.value)
    if expression.operator == LogicalOperator.AND:
        return all(results)
    return any(results)
