"""Store of open page controllers, keyed by page id."""

import threading
from typing import TYPE_CHECKING, Dict, Optional
from datetime import datetime, timedelta

if TYPE_CHECKING:
    from ..dispatch.page_controller import PageController


class PageSessionStore:
    """Thread-safe store of page controllers with idle cleanup."""

    def __init__(self, idle_minutes: int = 60):
        self._pages: Dict[str, "PageController"] = {}
        self._last_activity: Dict[str, datetime] = {}
        self._lock = threading.Lock()
        self.idle_after = timedelta(minutes=idle_minutes)

    def add(self, page: "PageController") -> None:
        with self._lock:
            self._pages[page.page_id] = page
            self._last_activity[page.page_id] = datetime.now()

    def get(self, page_id: str) -> Optional["PageController"]:
        """Get a page and mark it active."""
        with self._lock:
            page = self._pages.get(page_id)
            if page is not None:
                self._last_activity[page_id] = datetime.now()
            return page

    def remove(self, page_id: str) -> bool:
        """Drop a page, e.g. when the user navigates away."""
        with self._lock:
            self._last_activity.pop(page_id, None)
            return self._pages.pop(page_id, None) is not None

    def cleanup_idle_pages(self) -> int:
        """Remove pages that have not been used for a while."""
        cutoff_time = datetime.now() - self.idle_after

        with self._lock:
            expired_pages = [
                page_id for page_id, last_activity
                in self._last_activity.items()
                if last_activity < cutoff_time
            ]

            for page_id in expired_pages:
                self._pages.pop(page_id, None)
                del self._last_activity[page_id]

        return len(expired_pages)

    def get_stats(self) -> Dict[str, int]:
        """Get store statistics."""
        with self._lock:
            return {
                "open_pages": len(self._pages),
                "selected_rows": sum(len(page.selection) for page in self._pages.values()),
            }
