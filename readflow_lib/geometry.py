# --- readflow_lib/geometry.py ---
"""
readflow_lib/geometry.py: Rectangle type and pure geometry helpers.

All coordinates use a top-left origin with y growing downward, in page points.
Tolerances are always passed in by the caller.
"""
import statistics
from dataclasses import dataclass
from functools import cmp_to_key


@dataclass(frozen=True)
class Rect:
    """An axis-aligned rectangle stored as origin plus size."""

    x: float
    y: float
    w: float
    h: float

    @classmethod
    def from_ltrb(cls, l, t, r, b) -> "Rect":
        return cls(l, t, r - l, b - t)

    @classmethod
    def from_dict(cls, data) -> "Rect":
        """Accepts either {x, y, w, h} or a [x0, y0, x1, y1] sequence."""
        if isinstance(data, dict):
            return cls(
                float(data["x"]), float(data["y"]), float(data["w"]), float(data["h"])
            )
        x0, y0, x1, y1 = (float(v) for v in data)
        return cls.from_ltrb(x0, y0, x1, y1)

    @property
    def l(self):
        return self.x

    @property
    def t(self):
        return self.y

    @property
    def r(self):
        return self.x + self.w

    @property
    def b(self):
        return self.y + self.h

    @property
    def area(self):
        return area(self)

    @property
    def center(self):
        return self.x + self.w / 2, self.y + self.h / 2

    def to_dict(self) -> dict:
        return {
            "x": round(self.x, 3),
            "y": round(self.y, 3),
            "w": round(self.w, 3),
            "h": round(self.h, 3),
        }


def area(rect: Rect) -> float:
    """Area of a rectangle; degenerate or inverted rectangles have zero area."""
    return max(0.0, rect.w) * max(0.0, rect.h)


def union(a: Rect | None, b: Rect) -> Rect:
    """Smallest rectangle enclosing both; a missing first operand returns b."""
    if a is None:
        return b
    return Rect.from_ltrb(min(a.l, b.l), min(a.t, b.t), max(a.r, b.r), max(a.b, b.b))


def union_all(rects) -> Rect | None:
    result = None
    for rect in rects:
        result = union(result, rect)
    return result


def intersection_area(a: Rect, b: Rect) -> float:
    width = min(a.r, b.r) - max(a.l, b.l)
    height = min(a.b, b.b) - max(a.t, b.t)
    return max(0.0, width) * max(0.0, height)


def overlap_ratio(inner: Rect, outer: Rect) -> float:
    """Fraction of `inner` covered by `outer`; 0 when `inner` has no area."""
    inner_area = area(inner)
    if inner_area <= 0:
        return 0.0
    return intersection_area(inner, outer) / inner_area


def rects_intersect(a: Rect, b: Rect) -> bool:
    """True when the interiors overlap; shared edges do not count."""
    return a.l < b.r and b.l < a.r and a.t < b.b and b.t < a.b


def horizontal_overlap(a: Rect, b: Rect) -> float:
    return max(0.0, min(a.r, b.r) - max(a.l, b.l))


def vertical_overlap(a: Rect, b: Rect) -> float:
    return max(0.0, min(a.b, b.b) - max(a.t, b.t))


def x_ranges_overlap(a: Rect, b: Rect) -> bool:
    return a.l < b.r and b.l < a.r


def y_ranges_overlap(a: Rect, b: Rect) -> bool:
    return a.t < b.b and b.t < a.b


def same_edges(a: Rect, b: Rect, tolerance: float) -> bool:
    """Both left and right edges match within tolerance."""
    return abs(a.l - b.l) <= tolerance and abs(a.r - b.r) <= tolerance


def similar_edge(a: Rect, b: Rect, tolerance: float) -> bool:
    """Either the left or the right edges match within tolerance."""
    return abs(a.l - b.l) <= tolerance or abs(a.r - b.r) <= tolerance


def horizontally_contained(inner: Rect, outer: Rect, tolerance: float) -> bool:
    return inner.l >= outer.l - tolerance and inner.r <= outer.r + tolerance


def contains(outer: Rect, inner: Rect, tolerance: float = 0.0) -> bool:
    return (
        inner.l >= outer.l - tolerance
        and inner.t >= outer.t - tolerance
        and inner.r <= outer.r + tolerance
        and inner.b <= outer.b + tolerance
    )


def x_overlap_ratio(a: Rect, b: Rect) -> float:
    """Horizontal overlap relative to the narrower of the two rectangles."""
    narrower = min(a.w, b.w)
    if narrower <= 0:
        return 0.0
    return horizontal_overlap(a, b) / narrower


def rects_equal(a: Rect, b: Rect, tolerance: float = 0.01) -> bool:
    return (
        abs(a.l - b.l) <= tolerance
        and abs(a.t - b.t) <= tolerance
        and abs(a.r - b.r) <= tolerance
        and abs(a.b - b.b) <= tolerance
    )


def expand(rect: Rect, margin: float) -> Rect:
    return Rect.from_ltrb(rect.l - margin, rect.t - margin, rect.r + margin, rect.b + margin)


def median(values, default=None):
    values = [v for v in values if v is not None]
    if not values:
        return default
    return statistics.median(values)


def sort_top_left(items, rect_of=lambda item: item, tie_window: float = 0.1):
    """Sorts top-to-bottom, treating tops within `tie_window` as one row ordered by left."""

    def compare(a, b):
        ra, rb = rect_of(a), rect_of(b)
        if abs(ra.t - rb.t) > tie_window:
            return -1 if ra.t < rb.t else 1
        if ra.l != rb.l:
            return -1 if ra.l < rb.l else 1
        return 0

    return sorted(items, key=cmp_to_key(compare))
