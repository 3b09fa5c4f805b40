# File: civicvoice/services/viewport.py
"""
Map viewport math: bounding boxes over issue coordinates and the fit/fly
commands handed to the map widget.
"""

from dataclasses import dataclass
from itertools import count
from typing import Iterable, Optional, Tuple

from civicvoice.core.config import settings
from civicvoice.core.errors import ValidationError


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    min_lng: float
    max_lat: float
    max_lng: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lng <= lng <= self.max_lng

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_lat + self.max_lat) / 2, (self.min_lng + self.max_lng) / 2)

    def to_bbox_param(self) -> str:
        """minLng,minLat,maxLng,maxLat, the order the ``bbox`` query parameter uses."""
        return f"{self.min_lng},{self.min_lat},{self.max_lng},{self.max_lat}"

    @classmethod
    def from_bbox_param(cls, raw: str) -> "BoundingBox":
        min_lng, min_lat, max_lng, max_lat = [float(x) for x in raw.split(",")]
        if min_lat > max_lat or min_lng > max_lng:
            raise ValueError("bbox minimum exceeds maximum")
        return cls(min_lat=min_lat, min_lng=min_lng, max_lat=max_lat, max_lng=max_lng)


@dataclass(frozen=True)
class ViewportCommand:
    seq: int
    kind: str  # "fit" | "fly"
    duration_ms: int
    bounds: Optional[BoundingBox] = None
    padding_px: int = 0
    max_zoom: Optional[float] = None
    center: Optional[Tuple[float, float]] = None
    zoom: Optional[float] = None


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _coordinates(points: Iterable) -> Iterable[Tuple[float, float]]:
    for p in points:
        if isinstance(p, dict):
            lat, lng = p.get("lat"), p.get("lng")
        elif isinstance(p, tuple):
            lat, lng = p
        else:
            lat, lng = getattr(p, "lat", None), getattr(p, "lng", None)
        if lat is None or lng is None:
            continue
        yield float(lat), float(lng)


def compute_bounds(points: Iterable, padding_deg: Optional[float] = None) -> Optional[BoundingBox]:
    """
    Smallest box around every point that has coordinates, grown by
    ``padding_deg`` on each side. None when there is nothing to show.
    """
    pad = settings.map_bounds_padding_deg if padding_deg is None else padding_deg
    coords = list(_coordinates(points))
    if not coords:
        return None
    lats = [c[0] for c in coords]
    lngs = [c[1] for c in coords]
    return BoundingBox(
        min_lat=_clamp(min(lats) - pad, -90.0, 90.0),
        min_lng=_clamp(min(lngs) - pad, -180.0, 180.0),
        max_lat=_clamp(max(lats) + pad, -90.0, 90.0),
        max_lng=_clamp(max(lngs) + pad, -180.0, 180.0),
    )


class ViewportSynchronizer:
    """
    Issues viewport commands. Each command supersedes every earlier one; the
    map applies a command only while ``is_current`` holds for it.
    """

    def __init__(self):
        self._seq = count(1)
        self.current: Optional[ViewportCommand] = None

    def _issue(self, **kwargs) -> ViewportCommand:
        self.current = ViewportCommand(seq=next(self._seq), duration_ms=settings.map_transition_ms, **kwargs)
        return self.current

    def fit(self, points: Iterable) -> Optional[ViewportCommand]:
        bounds = compute_bounds(points)
        if bounds is None:
            return None
        return self._issue(
            kind="fit",
            bounds=bounds,
            padding_px=settings.map_fit_padding_px,
            max_zoom=settings.map_fit_max_zoom,
        )

    def focus_on(self, issue) -> ViewportCommand:
        if issue.lat is None or issue.lng is None:
            raise ValidationError("lat", f"Issue {issue.id} has no map coordinates")
        return self._issue(kind="fly", center=(issue.lat, issue.lng), zoom=settings.map_focus_zoom)

    def is_current(self, command: ViewportCommand) -> bool:
        return self.current is not None and command.seq == self.current.seq

    def cancel(self) -> None:
        self.current = None
