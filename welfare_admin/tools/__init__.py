"""Filter compilation, predicate editing and selection tools."""

from .predicate_compiler import (
    compile_predicate,
    compile_predicates,
    compile_query,
    compile_search,
    compile_status,
    evaluate,
    is_active,
    to_postgrest_params,
)
from .filter_rules import create_predicate, set_field, set_operator, set_values
from .selection import SelectionSet, SelectionState

__all__ = [
    "compile_predicate",
    "compile_predicates",
    "compile_query",
    "compile_search",
    "compile_status",
    "evaluate",
    "is_active",
    "to_postgrest_params",
    "create_predicate",
    "set_field",
    "set_operator",
    "set_values",
    "SelectionSet",
    "SelectionState",
]
