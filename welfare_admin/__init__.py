"""Welfare fund administration: filter compilation, row selection and bulk actions."""

__version__ = "1.0.0"

from .dispatch import BulkActionDispatcher, PageController
from .tools import SelectionSet, compile_query
from .utils import ResultCache

__all__ = [
    "BulkActionDispatcher",
    "PageController",
    "SelectionSet",
    "compile_query",
    "ResultCache",
    "__version__"
]
