# File: civicvoice/schemas/map.py
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, Field

from civicvoice.core.errors import ValidationError
from civicvoice.models.issue import IssueCategory, IssueStatus
from civicvoice.services import filters
from civicvoice.services.viewport import BoundingBox, ViewportCommand


class FilterStateIO(BaseModel):
    categories: List[IssueCategory] = Field(default_factory=lambda: list(IssueCategory))
    statuses: List[IssueStatus] = Field(default_factory=lambda: [IssueStatus.pending, IssueStatus.in_progress])
    search: str = ""
    selected_category: Optional[IssueCategory] = None

    def to_state(self) -> filters.FilterState:
        categories = frozenset(self.categories)
        # the selection follows the checkboxes; a client-sent value is not trusted
        return filters.FilterState(
            categories=categories,
            statuses=frozenset(self.statuses),
            search=self.search,
            selected_category=filters.derive_selected(categories),
        )

    @classmethod
    def from_state(cls, state: filters.FilterState) -> "FilterStateIO":
        return cls(
            categories=state.ordered_categories(),
            statuses=state.ordered_statuses(),
            search=state.search,
            selected_category=state.selected_category,
        )


class FilterEventIn(BaseModel):
    type: Literal["category_toggled", "selected_category_set", "category_clicked",
                  "status_toggled", "search_changed", "reset"]
    category: Optional[IssueCategory] = None
    status: Optional[IssueStatus] = None
    checked: bool = True
    term: str = ""

    def to_event(self) -> filters.FilterEvent:
        if self.type == "category_toggled":
            return filters.CategoryToggled(self._need("category"), self.checked)
        if self.type == "selected_category_set":
            return filters.SelectedCategorySet(self.category)
        if self.type == "category_clicked":
            return filters.CategoryClicked(self._need("category"))
        if self.type == "status_toggled":
            return filters.StatusToggled(self._need("status"), self.checked)
        if self.type == "search_changed":
            return filters.SearchChanged(self.term)
        return filters.FiltersReset()

    def _need(self, name: str):
        value = getattr(self, name)
        if value is None:
            raise ValidationError(name, f"{name} is required for {self.type}")
        return value


class FilterReduceIn(BaseModel):
    state: FilterStateIO = Field(default_factory=FilterStateIO)
    event: FilterEventIn


class BoundsOut(BaseModel):
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float
    bbox: str

    @classmethod
    def from_box(cls, box: Optional[BoundingBox]) -> Optional["BoundsOut"]:
        if box is None:
            return None
        return cls(min_lat=box.min_lat, min_lng=box.min_lng, max_lat=box.max_lat,
                   max_lng=box.max_lng, bbox=box.to_bbox_param())


class ViewportCommandOut(BaseModel):
    seq: int
    kind: str
    duration_ms: int
    bounds: Optional[BoundsOut] = None
    padding_px: int = 0
    max_zoom: Optional[float] = None
    center: Optional[Tuple[float, float]] = None
    zoom: Optional[float] = None

    @classmethod
    def from_command(cls, cmd: Optional[ViewportCommand]) -> Optional["ViewportCommandOut"]:
        if cmd is None:
            return None
        return cls(seq=cmd.seq, kind=cmd.kind, duration_ms=cmd.duration_ms,
                   bounds=BoundsOut.from_box(cmd.bounds), padding_px=cmd.padding_px,
                   max_zoom=cmd.max_zoom, center=cmd.center, zoom=cmd.zoom)


class MapIssueOut(BaseModel):
    id: int
    title: str
    lat: float
    lng: float
    category: IssueCategory
    status: IssueStatus
    votes: int


class MapViewOut(BaseModel):
    state: FilterStateIO
    issues: List[MapIssueOut]
    total: int
    bounds: Optional[BoundsOut] = None
    command: Optional[ViewportCommandOut] = None
