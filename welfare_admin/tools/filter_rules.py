"""Editing rules for filter predicates.

Every function returns a new predicate. Field names are checked against the
entity's declared fields here, at creation/edit time, so the compiler never
sees an undeclared field.
"""

from typing import Optional

from ..models import (
    EntityDefinition,
    FilterOperator,
    FilterPredicate,
    InvalidOperatorError,
    default_operator,
)
from ..models.filter_models import UNARY_OPERATORS, Scalar


def create_predicate(entity: EntityDefinition, field: Optional[str] = None) -> FilterPredicate:
    """Create an empty predicate on a declared field (the first one by default)."""
    if field is None:
        if not entity.fields:
            raise ValueError(f"Entity '{entity.name}' declares no filterable fields")
        field = entity.fields[0].key
    definition = entity.get_field(field)
    return FilterPredicate(field=definition.key, operator=default_operator(definition.type))


def set_field(entity: EntityDefinition, predicate: FilterPredicate, field: str) -> FilterPredicate:
    """Move a predicate to another field, resetting operator and clearing values."""
    definition = entity.get_field(field)
    return FilterPredicate(field=definition.key, operator=default_operator(definition.type))


def set_operator(entity: EntityDefinition, predicate: FilterPredicate, operator: FilterOperator) -> FilterPredicate:
    """Change the operator, clearing both values."""
    definition = entity.get_field(predicate.field)
    operator = FilterOperator(operator)
    if operator not in definition.operators:
        raise InvalidOperatorError(
            predicate.field,
            operator.value,
            [allowed.value for allowed in definition.operators],
        )
    return FilterPredicate(field=predicate.field, operator=operator)


def set_values(
    predicate: FilterPredicate,
    value: Optional[Scalar] = None,
    value2: Optional[Scalar] = None,
) -> FilterPredicate:
    """Set the values, emptiness tests keep theirs cleared."""
    if predicate.operator in UNARY_OPERATORS:
        return predicate.model_copy(update={"value": None, "value2": None})
    if predicate.operator != FilterOperator.BETWEEN:
        value2 = None
    return predicate.model_copy(update={"value": value, "value2": value2})
