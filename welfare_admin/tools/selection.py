"""Row selection for bulk actions."""

from typing import Dict, Iterable, List

from pydantic import BaseModel, Field


class SelectionState(BaseModel):
    """Snapshot of a selection and its tri-state header indicator."""
    selected_ids: List[str] = Field(default_factory=list, description="Selected identifiers")
    count: int = Field(default=0, description="Number of selected identifiers")
    all_selected: bool = Field(default=False, description="Header checkbox checked")
    some_selected: bool = Field(default=False, description="Header checkbox indeterminate")


class SelectionSet:
    """
    Set of selected row identifiers.

    Insertion order is kept so bulk mutations receive a stable id list.
    Identifiers are not purged when the row list changes.
    """

    def __init__(self):
        self._ids: Dict[str, None] = {}

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, row_id: str) -> bool:
        return row_id in self._ids

    @property
    def ids(self) -> List[str]:
        return list(self._ids)

    def select_all(self, checked: bool, row_ids: Iterable[str]) -> None:
        """Select every currently loaded row, or none. Later rows are not tracked."""
        if checked:
            self._ids = dict.fromkeys(row_ids)
        else:
            self._ids = {}

    def toggle(self, row_id: str, checked: bool) -> None:
        if checked:
            self._ids.setdefault(row_id, None)
        else:
            self._ids.pop(row_id, None)

    def clear(self) -> None:
        self._ids = {}

    def all_selected(self, current_row_count: int) -> bool:
        return len(self._ids) > 0 and len(self._ids) == current_row_count

    def some_selected(self, current_row_count: int) -> bool:
        return len(self._ids) > 0 and not self.all_selected(current_row_count)

    def state(self, current_row_count: int) -> SelectionState:
        return SelectionState(
            selected_ids=self.ids,
            count=len(self._ids),
            all_selected=self.all_selected(current_row_count),
            some_selected=self.some_selected(current_row_count),
        )
