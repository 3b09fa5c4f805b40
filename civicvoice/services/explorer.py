# File: civicvoice/services/explorer.py
"""
Map explorer view-model.

Holds the filter state, the visible issue set and the latest viewport
command for one map view, and wires the three together:

- every filter event goes through ``filters.reduce`` and recomputes the
  visible set and a fit-to-bounds command in the same step
- typing in the search box is debounced; clearing or resetting is not
- ``load`` results that arrive after a newer load or after ``close`` are
  dropped
"""

import logging
from typing import Awaitable, Callable, List, Optional, Sequence

from civicvoice.core.config import settings
from civicvoice.services import filters
from civicvoice.services.debounce import Debouncer
from civicvoice.services.viewport import ViewportCommand, ViewportSynchronizer

logger = logging.getLogger(__name__)


class MapExplorer:

    def __init__(
        self,
        issues: Sequence = (),
        state: Optional[filters.FilterState] = None,
        debounce_seconds: Optional[float] = None,
        on_change: Optional[Callable[["MapExplorer"], None]] = None,
    ):
        if debounce_seconds is None:
            debounce_seconds = settings.search_debounce_ms / 1000
        self.state = state or filters.FilterState()
        self.viewport = ViewportSynchronizer()
        self.on_change = on_change
        self.visible: List = []
        self.last_command: Optional[ViewportCommand] = None
        self.closed = False
        self._issues: List = list(issues)
        self._generation = 0
        self._search = Debouncer(debounce_seconds, self._commit_search)
        self._recompute()

    @property
    def issues(self) -> List:
        return list(self._issues)

    @property
    def selected_category(self):
        return self.state.selected_category

    def dispatch(self, event: filters.FilterEvent) -> filters.FilterState:
        if self.closed:
            return self.state
        next_state = filters.reduce(self.state, event)
        if next_state != self.state:
            self.state = next_state
            self._recompute()
        return self.state

    def type_search(self, text: str) -> None:
        """Keystroke entry point; must be called from a running event loop."""
        if not self.closed:
            self._search.trigger(text)

    def clear_search(self) -> None:
        self._search.cancel()
        self.dispatch(filters.SearchChanged(""))

    def reset(self) -> None:
        self._search.cancel()
        self.dispatch(filters.FiltersReset())

    def focus(self, issue) -> ViewportCommand:
        self.last_command = self.viewport.focus_on(issue)
        return self.last_command

    async def load(self, fetch: Callable[[], Awaitable[Sequence]]) -> bool:
        """
        Replace the issue set with the result of ``fetch``. Returns False when
        the result was stale and discarded.
        """
        self._generation += 1
        generation = self._generation
        result = await fetch()
        if self.closed or generation != self._generation:
            logger.debug(f"Discarding stale map load (generation {generation})")
            return False
        self._issues = list(result)
        self._recompute()
        return True

    def close(self) -> None:
        self.closed = True
        self._search.cancel()
        self.viewport.cancel()

    def _commit_search(self, text: str) -> None:
        self.dispatch(filters.SearchChanged(text))

    def _recompute(self) -> None:
        self.visible = filters.apply_filters(self._issues, self.state)
        command = self.viewport.fit(self.visible)
        if command is not None:
            self.last_command = command
        if self.on_change is not None:
            self.on_change(self)
