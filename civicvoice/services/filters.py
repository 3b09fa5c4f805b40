# File: civicvoice/services/filters.py
"""
Filter engine for the issue browser and map.

An issue passes when its category is checked AND its status is checked AND
the search term is empty or found (case-insensitively) in its title,
description or location. Values within an axis are OR-ed.

The category checkboxes and the dashboard's single ``selected_category`` are
two views of one state. ``reduce`` is the only way to change either, so a
change coming from ``selected_category`` never re-runs the checkbox
derivation that could overwrite it.
"""

from dataclasses import dataclass, replace
from typing import FrozenSet, Iterable, List, Optional, Union

from civicvoice.models.issue import Issue, IssueCategory, IssueStatus

ALL_CATEGORIES: FrozenSet[IssueCategory] = frozenset(IssueCategory)
DEFAULT_STATUSES: FrozenSet[IssueStatus] = frozenset({IssueStatus.pending, IssueStatus.in_progress})


@dataclass(frozen=True)
class FilterState:
    categories: FrozenSet[IssueCategory] = ALL_CATEGORIES
    statuses: FrozenSet[IssueStatus] = DEFAULT_STATUSES
    search: str = ""
    selected_category: Optional[IssueCategory] = None

    def ordered_categories(self) -> List[IssueCategory]:
        return [c for c in IssueCategory if c in self.categories]

    def ordered_statuses(self) -> List[IssueStatus]:
        return [s for s in IssueStatus if s in self.statuses]


@dataclass(frozen=True)
class CategoryToggled:
    category: IssueCategory
    checked: bool


@dataclass(frozen=True)
class SelectedCategorySet:
    category: Optional[IssueCategory]


@dataclass(frozen=True)
class CategoryClicked:
    category: IssueCategory


@dataclass(frozen=True)
class StatusToggled:
    status: IssueStatus
    checked: bool


@dataclass(frozen=True)
class SearchChanged:
    term: str


@dataclass(frozen=True)
class FiltersReset:
    pass


FilterEvent = Union[CategoryToggled, SelectedCategorySet, CategoryClicked, StatusToggled, SearchChanged, FiltersReset]


def derive_selected(categories: FrozenSet[IssueCategory]) -> Optional[IssueCategory]:
    if len(categories) == 1:
        return next(iter(categories))
    return None


def _select(state: FilterState, category: Optional[IssueCategory]) -> FilterState:
    if category is not None:
        return replace(state, categories=frozenset({category}), selected_category=category)
    # cleared from outside: a single (or empty) checkbox selection collapses
    # back to "all"; a hand-picked multi-selection is kept
    if len(state.categories) <= 1:
        return replace(state, categories=ALL_CATEGORIES, selected_category=None)
    return replace(state, selected_category=None)


def reduce(state: FilterState, event: FilterEvent) -> FilterState:
    if isinstance(event, CategoryToggled):
        if event.checked:
            categories = state.categories | {event.category}
        else:
            categories = state.categories - {event.category}
        return replace(state, categories=categories, selected_category=derive_selected(categories))

    if isinstance(event, SelectedCategorySet):
        return _select(state, event.category)

    if isinstance(event, CategoryClicked):
        if state.selected_category == event.category:
            return _select(state, None)
        return _select(state, event.category)

    if isinstance(event, StatusToggled):
        if event.checked:
            return replace(state, statuses=state.statuses | {event.status})
        return replace(state, statuses=state.statuses - {event.status})

    if isinstance(event, SearchChanged):
        return replace(state, search=event.term)

    if isinstance(event, FiltersReset):
        return FilterState()

    raise TypeError(f"Unknown filter event: {event!r}")


def matches_search(issue, term: str) -> bool:
    if term == "":
        return True
    needle = term.lower()
    return (
        needle in (issue.title or "").lower()
        or needle in (issue.description or "").lower()
        or needle in (issue.location or "").lower()
    )


def matches(issue, state: FilterState) -> bool:
    return (
        issue.category in state.categories
        and issue.status in state.statuses
        and matches_search(issue, state.search)
    )


def apply_filters(issues: Iterable, state: FilterState) -> list:
    return [i for i in issues if matches(i, state)]


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def filter_query(q, state: FilterState):
    """Push the same predicate down into a SQLAlchemy query over Issue."""
    q = q.filter(Issue.category.in_(state.ordered_categories()))
    q = q.filter(Issue.status.in_(state.ordered_statuses()))
    if state.search:
        pattern = f"%{_escape_like(state.search)}%"
        q = q.filter(
            Issue.title.ilike(pattern, escape="\\")
            | Issue.description.ilike(pattern, escape="\\")
            | Issue.location.ilike(pattern, escape="\\")
        )
    return q


def parse_csv_enum(raw: Optional[str], enum_cls, default: FrozenSet) -> FrozenSet:
    """
    Parse a comma-separated query value. None keeps ``default``; unknown
    values are ignored; an empty string selects nothing.
    """
    if raw is None:
        return default
    picked = set()
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            picked.add(enum_cls(part))
        except ValueError:
            # ignore invalid values
            pass
    return frozenset(picked)
