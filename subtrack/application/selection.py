"""
Timeline selection: a set of day / month / year picks.

Raw picks are stored as (requested kind, anchor day) in insertion order; the
span actually shown depends on the zoom level. When day ticks are hidden a
day pick is shown as its month, when month ticks are hidden as its year
("effective kind"). Picks are kept disjoint at the effective granularity.
"""
import logging
from dataclasses import dataclass

from subtrack.application.charge_totals import ChargeTotals, CurrencyBucket, combine_day_totals
from subtrack.application.viewport import ViewportMapper, lowest_displayable_kind
from subtrack.config import Settings
from subtrack.domain.date_index import (
    DayRange, day_number_to_iso, day_number_to_parts, is_finite_number,
    month_bounds, round_day, supported_range, to_day_number, year_bounds,
)
from subtrack.domain.granularity import (
    KIND_DAY, KIND_MONTH, KIND_YEAR, kind_from_rank, kind_rank, normalize_kind,
)

logger = logging.getLogger(__name__)

KIND_MULTI = "multi"


@dataclass(frozen=True)
class SelectionEntry:
    kind: str
    anchor_day: int


@dataclass(frozen=True)
class SelectionSpan:
    kind: str
    start_day: int
    end_day: int
    label: str

    def overlaps(self, other: "SelectionSpan") -> bool:
        return self.start_day <= other.end_day and self.end_day >= other.start_day


@dataclass(frozen=True)
class ToggleResult:
    selected: bool  # False when the pick was toggled off
    range_changed: bool


@dataclass(frozen=True)
class SelectedTotals:
    kind: str  # day / month / year / multi
    label: str
    totals: CurrencyBucket
    start_day: int


def effective_kind(requested_kind, day_width_px: float, settings: Settings | None = None) -> str:
    """Coarsest of the requested kind and the finest kind visible at this zoom."""
    lowest = lowest_displayable_kind(day_width_px, settings)
    return kind_from_rank(max(kind_rank(requested_kind), kind_rank(lowest)))


def normalize_anchor(kind, anchor_day, bounds: DayRange | None = None) -> int:
    """Round and clamp; month/year picks snap to the first day of the period."""
    bounds = bounds or supported_range()
    kind = normalize_kind(kind)
    day = bounds.clamp(anchor_day)
    if kind == KIND_DAY:
        return day
    parts = day_number_to_parts(day)
    if kind == KIND_YEAR:
        return bounds.clamp(to_day_number(parts.year, 0, 1))
    return bounds.clamp(to_day_number(parts.year, parts.month_index, 1))


def span_for(kind, anchor_day, bounds: DayRange | None = None) -> SelectionSpan:
    """Day, calendar month or calendar year containing anchor_day, clamped."""
    bounds = bounds or supported_range()
    kind = normalize_kind(kind)
    anchor = bounds.clamp(anchor_day)
    parts = day_number_to_parts(anchor)

    if kind == KIND_YEAR:
        period = year_bounds(parts.year)
        return SelectionSpan(
            kind=KIND_YEAR,
            start_day=bounds.clamp(period.start),
            end_day=bounds.clamp(period.end),
            label=f"{parts.year}",
        )
    if kind == KIND_MONTH:
        period = month_bounds(parts.year, parts.month_index)
        return SelectionSpan(
            kind=KIND_MONTH,
            start_day=bounds.clamp(period.start),
            end_day=bounds.clamp(period.end),
            label=f"{parts.year}-{parts.month_index + 1:02d}",
        )
    return SelectionSpan(kind=KIND_DAY, start_day=anchor, end_day=anchor, label=day_number_to_iso(anchor))


class SelectionSet:
    """
    Selection state bound to one viewport.

    The viewport supplies the zoom level for effective kinds and is grown so
    that a month/year selection is never truncated by the loaded range.
    """

    def __init__(self, viewport: ViewportMapper, entries=()):
        self.viewport = viewport
        self._entries: list[SelectionEntry] = []
        for entry in entries:
            self._entries.append(SelectionEntry(
                kind=normalize_kind(entry.kind),
                anchor_day=normalize_anchor(entry.kind, entry.anchor_day, self.bounds),
            ))

    @property
    def bounds(self) -> DayRange:
        return self.viewport.bounds

    @property
    def entries(self) -> list[SelectionEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def is_empty(self) -> bool:
        return not self._entries

    def effective_kind(self, requested_kind) -> str:
        return effective_kind(requested_kind, self.viewport.day_width_px, self.viewport.settings)

    def span_for(self, kind, anchor_day) -> SelectionSpan:
        return span_for(kind, anchor_day, self.bounds)

    def _effective_span(self, entry: SelectionEntry) -> SelectionSpan:
        return self.span_for(self.effective_kind(entry.kind), entry.anchor_day)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def toggle(self, requested_kind, anchor_day) -> ToggleResult:
        """
        Toggle a pick.

        An identical pick is removed. Otherwise every pick whose effective span
        overlaps the new effective span is dropped and the new pick appended.
        """
        if not is_finite_number(anchor_day):
            return ToggleResult(selected=False, range_changed=False)
        kind = normalize_kind(requested_kind)
        anchor = normalize_anchor(kind, round_day(anchor_day), self.bounds)

        for index, entry in enumerate(self._entries):
            if entry.kind == kind and entry.anchor_day == anchor:
                del self._entries[index]
                return ToggleResult(selected=False, range_changed=self._ensure_range_covers_spans())

        new_span = self.span_for(self.effective_kind(kind), anchor)
        kept = [entry for entry in self._entries if not self._effective_span(entry).overlaps(new_span)]
        dropped = len(self._entries) - len(kept)
        if dropped:
            logger.debug("Selection %s@%d replaced %d overlapping pick(s)", kind, anchor, dropped)
        self._entries = kept + [SelectionEntry(kind=kind, anchor_day=anchor)]
        return ToggleResult(selected=True, range_changed=self._ensure_range_covers_spans())

    def clear(self) -> bool:
        if not self._entries:
            return False
        self._entries = []
        return True

    def _ensure_range_covers_spans(self) -> bool:
        spans = self.effective_spans()
        if not spans:
            return False
        return self.viewport.grow_range_to_cover_span(
            min(span.start_day for span in spans),
            max(span.end_day for span in spans),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def _spans(self, effective: bool) -> list[SelectionSpan]:
        spans = []
        seen = set()
        for entry in self._entries:
            span = self._effective_span(entry) if effective else self.span_for(entry.kind, entry.anchor_day)
            key = (span.kind, span.start_day, span.end_day)
            if key in seen:
                continue
            seen.add(key)
            spans.append(span)
        return spans

    def effective_spans(self) -> list[SelectionSpan]:
        return self._spans(effective=True)

    def requested_spans(self) -> list[SelectionSpan]:
        return self._spans(effective=False)

    def primary_span(self) -> SelectionSpan | None:
        """Effective span of the most recent pick."""
        if not self._entries:
            return None
        return self._effective_span(self._entries[-1])

    def selected_day(self) -> int | None:
        if not self._entries:
            return None
        return self._entries[-1].anchor_day

    def totals_info(self, totals: ChargeTotals | None) -> SelectedTotals | None:
        """
        Combined charges over every selected day (each day once).

        Days outside the aggregated range contribute nothing.
        """
        spans = self.effective_spans()
        if not spans:
            return None
        primary = self.primary_span()
        multi = len(spans) > 1
        combined: CurrencyBucket = {}
        if totals is not None:
            combined = combine_day_totals(spans, totals.day_totals, totals.range_start, totals.range_end)
        return SelectedTotals(
            kind=KIND_MULTI if multi else primary.kind,
            label="" if multi else primary.label,
            totals=combined,
            start_day=primary.start_day,
        )
