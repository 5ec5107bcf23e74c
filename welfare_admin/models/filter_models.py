"""Core filter data models."""

from typing import List, Optional, Tuple, Union
from pydantic import BaseModel, Field
from enum import Enum


Scalar = Union[int, float, str]


class FieldType(str, Enum):
    """Widget/data type of a filterable field."""
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"


class FilterOperator(str, Enum):
    """User-facing filter operators."""
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    EQUALS = "equals"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"
    BETWEEN = "between"
    AFTER = "after"
    BEFORE = "before"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"


# Operators that take no value
UNARY_OPERATORS = frozenset({FilterOperator.IS_EMPTY, FilterOperator.IS_NOT_EMPTY})

# Operator menus per field type, the first entry is the default
OPERATORS_BY_TYPE = {
    FieldType.TEXT: [
        FilterOperator.CONTAINS,
        FilterOperator.NOT_CONTAINS,
        FilterOperator.EQUALS,
        FilterOperator.STARTS_WITH,
        FilterOperator.ENDS_WITH,
        FilterOperator.IS_EMPTY,
        FilterOperator.IS_NOT_EMPTY,
    ],
    FieldType.NUMBER: [
        FilterOperator.EQUALS,
        FilterOperator.GREATER_THAN,
        FilterOperator.LESS_THAN,
        FilterOperator.GREATER_EQUAL,
        FilterOperator.LESS_EQUAL,
        FilterOperator.BETWEEN,
        FilterOperator.IS_EMPTY,
        FilterOperator.IS_NOT_EMPTY,
    ],
    FieldType.DATE: [
        FilterOperator.EQUALS,
        FilterOperator.AFTER,
        FilterOperator.BEFORE,
        FilterOperator.BETWEEN,
        FilterOperator.IS_EMPTY,
        FilterOperator.IS_NOT_EMPTY,
    ],
    FieldType.SELECT: [
        FilterOperator.EQUALS,
        FilterOperator.IS_EMPTY,
        FilterOperator.IS_NOT_EMPTY,
    ],
}


def valid_operators(field_type: FieldType) -> List[FilterOperator]:
    """Operators that apply to a field type."""
    return OPERATORS_BY_TYPE[field_type]


def default_operator(field_type: FieldType) -> FilterOperator:
    """First applicable operator for a field type."""
    return OPERATORS_BY_TYPE[field_type][0]


class ConditionOperator(str, Enum):
    """Backend comparison operators used in compiled expressions."""
    EQ = "eq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    ILIKE = "ilike"
    NOT_ILIKE = "not_ilike"
    IS_NULL = "is_null"
    NOT_NULL = "not_null"


class LogicalOperator(str, Enum):
    """Logical operators for filter groups."""
    AND = "and"
    OR = "or"


class FieldOption(BaseModel):
    """One choice of a select field."""
    value: str = Field(..., description="Stored value")
    label: str = Field(..., description="Human-readable label")


class FieldDefinition(BaseModel):
    """Filterable field metadata."""
    key: str = Field(..., description="Column name on the entity's table")
    label: str = Field(..., description="Human-readable label")
    type: FieldType = Field(default=FieldType.TEXT, description="Field type")
    options: Optional[List[FieldOption]] = Field(None, description="Choices for select fields")

    @property
    def operators(self) -> List[FilterOperator]:
        return valid_operators(self.type)


class FilterPredicate(BaseModel):
    """One user-authored filter rule."""
    field: str = Field(..., description="Declared field key")
    operator: FilterOperator = Field(..., description="Filter operator")
    value: Optional[Scalar] = Field(None, description="Filter value")
    value2: Optional[Scalar] = Field(None, description="Upper bound for 'between'")

    def as_key(self) -> Tuple:
        return (self.field, self.operator.value, self.value, self.value2)


class QueryState(BaseModel):
    """Full input of the predicate compiler for one page."""
    search_term: str = Field(default="", description="Free-text search")
    status_filter: str = Field(default="all", description="Status equality filter or 'all'")
    predicates: List[FilterPredicate] = Field(default_factory=list, description="Ordered filter rules")

    def as_key(self) -> Tuple:
        """Hashable form of the whole state, predicates kept in order."""
        return (
            self.search_term,
            self.status_filter,
            tuple(predicate.as_key() for predicate in self.predicates),
        )


class FilterCondition(BaseModel):
    """Leaf of a compiled filter expression."""
    field: str = Field(..., description="Column name")
    operator: ConditionOperator = Field(..., description="Comparison operator")
    value: Optional[Scalar] = Field(None, description="Comparison value or ILIKE pattern")

    class Config:
        frozen = True


class FilterGroup(BaseModel):
    """Group of expressions joined with a logical operator."""
    operator: LogicalOperator = Field(default=LogicalOperator.AND, description="Logical operator")
    value: Tuple[Union[FilterCondition, "FilterGroup"], ...] = Field(..., description="Member expressions")

    class Config:
        frozen = True


FilterGroup.model_rebuild()

FilterExpression = Union[FilterCondition, FilterGroup]
