"""
Viewport mapping: day <-> pixel transform, anchor-preserving zoom, level of
detail and growth of the materialized day range.

Coordinates:
- content pixel: 0 at range_start_day, day_width_px per day
- viewport x: content pixel minus scroll_left_px
"""
import logging
import math
from dataclasses import dataclass

from subtrack.config import Settings, get_settings
from subtrack.domain.date_index import DayRange, is_finite_number, round_day, supported_range
from subtrack.domain.granularity import KIND_DAY, KIND_MONTH, KIND_YEAR

logger = logging.getLogger(__name__)

# Initial coverage around today for ensure_range_for_subscriptions
DEFAULT_PAST_DAYS = 365
DEFAULT_FUTURE_DAYS = 730


@dataclass(frozen=True)
class ViewportState:
    day_width_px: float
    range_start_day: int
    range_end_day: int
    scroll_left_px: float = 0.0
    viewport_width_px: float = 0.0


@dataclass(frozen=True)
class LevelOfDetail:
    show_day: bool
    show_month: bool
    show_year: bool = True


def round_to_step(value: float, step: float) -> float:
    """Round to the nearest multiple of step (halves up), trimmed to 4 decimals."""
    if step <= 0:
        return value
    return round(math.floor(value / step + 0.5) * step, 4)


def level_of_detail(day_width_px: float, settings: Settings | None = None) -> LevelOfDetail:
    """
    Tick visibility at a zoom level.

    Hierarchical: hiding month ticks hides day ticks too.
    """
    settings = settings or get_settings()
    show_month = day_width_px >= settings.SHOW_MONTH_SCALE_AT_OR_ABOVE
    show_day = show_month and day_width_px >= settings.SHOW_DAY_SCALE_AT_OR_ABOVE
    return LevelOfDetail(show_day=show_day, show_month=show_month)


def lowest_displayable_kind(day_width_px: float, settings: Settings | None = None) -> str:
    """Finest granularity whose ticks are visible at this zoom level."""
    lod = level_of_detail(day_width_px, settings)
    if not lod.show_month:
        return KIND_YEAR
    if not lod.show_day:
        return KIND_MONTH
    return KIND_DAY


class ViewportMapper:
    """
    Zoom/pan state of one timeline view.

    Mutating methods return whether anything changed so the caller knows when
    to re-render. The materialized range only ever grows.
    """

    def __init__(
        self,
        day_width_px: float | None = None,
        range_start_day: int | None = None,
        range_end_day: int | None = None,
        scroll_left_px: float = 0.0,
        viewport_width_px: float = 0.0,
        bounds: DayRange | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.bounds = bounds or supported_range()

        if day_width_px is None or not is_finite_number(day_width_px):
            day_width_px = self.settings.DEFAULT_DAY_WIDTH
        self.day_width_px = self._normalize_width(day_width_px)

        start = self.bounds.start if range_start_day is None else self.bounds.clamp(range_start_day)
        end = self.bounds.end if range_end_day is None else self.bounds.clamp(range_end_day)
        if end < start:
            start, end = end, start
        self.range_start_day = start
        self.range_end_day = end

        self.scroll_left_px = float(scroll_left_px) if is_finite_number(scroll_left_px) else 0.0
        self.viewport_width_px = max(0.0, float(viewport_width_px)) if is_finite_number(viewport_width_px) else 0.0

    @classmethod
    def from_state(
        cls,
        state: ViewportState,
        bounds: DayRange | None = None,
        settings: Settings | None = None,
    ) -> "ViewportMapper":
        return cls(
            day_width_px=state.day_width_px,
            range_start_day=state.range_start_day,
            range_end_day=state.range_end_day,
            scroll_left_px=state.scroll_left_px,
            viewport_width_px=state.viewport_width_px,
            bounds=bounds,
            settings=settings,
        )

    def snapshot(self) -> ViewportState:
        return ViewportState(
            day_width_px=self.day_width_px,
            range_start_day=self.range_start_day,
            range_end_day=self.range_end_day,
            scroll_left_px=self.scroll_left_px,
            viewport_width_px=self.viewport_width_px,
        )

    # ------------------------------------------------------------------
    # Transform
    # ------------------------------------------------------------------

    @property
    def range(self) -> DayRange:
        return DayRange(start=self.range_start_day, end=self.range_end_day)

    @property
    def timeline_width_px(self) -> float:
        return self.range.length * self.day_width_px

    def day_to_pixel(self, day: float) -> float:
        return (day - self.range_start_day) * self.day_width_px

    def pixel_to_day_float(self, px: float) -> float:
        return self.range_start_day + px / self.day_width_px

    def day_to_viewport_x(self, day: float) -> float:
        return self.day_to_pixel(day) - self.scroll_left_px

    def viewport_x_to_day_float(self, x: float) -> float:
        return self.pixel_to_day_float(self.scroll_left_px + x)

    def visible_day_range(self) -> DayRange:
        """Whole days (partially) visible in the viewport, within the range."""
        first = math.floor(self.viewport_x_to_day_float(0))
        last = math.floor(self.viewport_x_to_day_float(self.viewport_width_px))
        return DayRange(start=self.range.clamp(first), end=self.range.clamp(last))

    def center_day(self) -> int | None:
        if self.viewport_width_px <= 0:
            return None
        center_px = self.scroll_left_px + self.viewport_width_px / 2
        return self.range_start_day + round_day(center_px / self.day_width_px)

    # ------------------------------------------------------------------
    # Zoom
    # ------------------------------------------------------------------

    def _normalize_width(self, width: float) -> float:
        low, high = self.settings.MIN_DAY_WIDTH, self.settings.MAX_DAY_WIDTH
        clamped = min(high, max(low, width))
        return min(high, max(low, round_to_step(clamped, self.settings.ZOOM_STEP)))

    def set_zoom(self, requested_width: float, anchor_day_float: float | None = None) -> bool:
        """
        Change px/day keeping anchor_day_float under the same viewport pixel.

        Default anchor: the day at the viewport centre.
        Returns False when the width is invalid or unchanged.
        """
        if not is_finite_number(requested_width):
            return False
        width = self._normalize_width(requested_width)
        if width == self.day_width_px:
            return False

        if anchor_day_float is None or not is_finite_number(anchor_day_float):
            anchor_day_float = self.viewport_x_to_day_float(self.viewport_width_px / 2)
        anchor_x = self.day_to_viewport_x(anchor_day_float)

        previous = self.day_width_px
        self.day_width_px = width
        self.scroll_left_px = self.day_to_pixel(anchor_day_float) - anchor_x
        logger.debug("Zoom %.2f -> %.2f px/day (anchor day %.3f)", previous, width, anchor_day_float)
        return True

    def zoom_at(self, requested_width: float, anchor_x: float) -> bool:
        """set_zoom anchored at a viewport pixel instead of a day."""
        if not is_finite_number(anchor_x):
            return self.set_zoom(requested_width)
        return self.set_zoom(requested_width, self.viewport_x_to_day_float(anchor_x))

    def zoom_in(self, anchor_day_float: float | None = None) -> bool:
        return self.set_zoom(self.day_width_px + self.settings.BUTTON_ZOOM_STEP, anchor_day_float)

    def zoom_out(self, anchor_day_float: float | None = None) -> bool:
        return self.set_zoom(self.day_width_px - self.settings.BUTTON_ZOOM_STEP, anchor_day_float)

    def level_of_detail(self) -> LevelOfDetail:
        return level_of_detail(self.day_width_px, self.settings)

    def lowest_displayable_kind(self) -> str:
        return lowest_displayable_kind(self.day_width_px, self.settings)

    # ------------------------------------------------------------------
    # Range growth
    # ------------------------------------------------------------------

    def _extend_left(self, days: int) -> int:
        next_start = max(self.bounds.start, self.range_start_day - max(1, days))
        added = self.range_start_day - next_start
        if added <= 0:
            return 0
        self.range_start_day = next_start
        # content shifts right; keep the same days on screen
        self.scroll_left_px += added * self.day_width_px
        return added

    def _extend_right(self, days: int) -> int:
        next_end = min(self.bounds.end, self.range_end_day + max(1, days))
        added = next_end - self.range_end_day
        if added <= 0:
            return 0
        self.range_end_day = next_end
        return added

    def grow_range_to_cover(self, day) -> bool:
        """
        Extend the range in RANGE_EXTEND_DAYS chunks until it covers day
        (plus RANGE_MARGIN_DAYS). Never shrinks.
        """
        target = self.bounds.clamp(day)
        chunk = max(1, self.settings.RANGE_EXTEND_DAYS)
        margin = max(0, self.settings.RANGE_MARGIN_DAYS)
        changed = False
        if target < self.range_start_day:
            need = self.range_start_day - target + margin
            changed = self._extend_left(math.ceil(need / chunk) * chunk) > 0 or changed
        if target > self.range_end_day:
            need = target - self.range_end_day + margin
            changed = self._extend_right(math.ceil(need / chunk) * chunk) > 0 or changed
        return changed

    def grow_range_to_cover_span(self, start_day, end_day) -> bool:
        """Widen the range exactly enough to include [start_day, end_day]."""
        start = self.bounds.clamp(start_day)
        end = self.bounds.clamp(end_day)
        low, high = min(start, end), max(start, end)

        next_start = min(self.range_start_day, low)
        next_end = max(self.range_end_day, high)
        if next_start == self.range_start_day and next_end == self.range_end_day:
            return False

        added_left = self.range_start_day - next_start
        self.range_start_day = next_start
        self.range_end_day = next_end
        self.scroll_left_px += added_left * self.day_width_px
        return True

    def ensure_range_for_subscriptions(self, subscriptions, today_day: int, spans=()) -> bool:
        """
        Widen the range around today, every subscription's lifetime and the
        given selection spans.
        """
        margin = self.settings.RANGE_MARGIN_DAYS
        today_day = self.bounds.clamp(today_day)
        min_day = today_day - DEFAULT_PAST_DAYS
        max_day = today_day + DEFAULT_FUTURE_DAYS

        for sub in subscriptions:
            start = self.bounds.clamp(sub.start_day)
            min_day = min(min_day, start - margin)
            max_day = max(max_day, start + DEFAULT_PAST_DAYS)
            if sub.end_day is not None:
                end = self.bounds.clamp(sub.end_day)
                if end >= start:
                    max_day = max(max_day, end + margin)

        for span in spans:
            min_day = min(min_day, span.start_day - margin)
            max_day = max(max_day, span.end_day + margin)

        return self.grow_range_to_cover_span(min_day, max_day)

    def scroll_to_day(self, day) -> float:
        """Centre day in the viewport (growing the range if needed)."""
        target = self.bounds.clamp(day)
        self.grow_range_to_cover(target)
        wanted = self.day_to_pixel(target) - self.viewport_width_px / 2
        max_scroll = max(0.0, self.timeline_width_px - self.viewport_width_px)
        self.scroll_left_px = min(max_scroll, max(0.0, wanted))
        return self.scroll_left_px

    def maybe_extend_on_scroll(self) -> bool:
        """Load one more chunk when the scroll position nears a range edge."""
        if self.range_start_day <= self.bounds.start and self.range_end_day >= self.bounds.end:
            return False
        threshold_px = self.settings.SCROLL_EXTEND_THRESHOLD_DAYS * self.day_width_px
        max_scroll = self.timeline_width_px - self.viewport_width_px
        left_distance = self.scroll_left_px
        right_distance = max_scroll - self.scroll_left_px
        chunk = max(1, self.settings.RANGE_EXTEND_DAYS)

        if left_distance < threshold_px and self.range_start_day > self.bounds.start:
            return self._extend_left(chunk) > 0
        if right_distance < threshold_px and self.range_end_day < self.bounds.end:
            return self._extend_right(chunk) > 0
        return False
