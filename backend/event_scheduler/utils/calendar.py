"""
Availability calendar expansion.

Turns TimeSlot templates (event-level time_slots plus each field's rental_slots)
into concrete AvailabilityWindow instances inside a search range. Windows are
ordered by (start, field_number, field_id, end), which is also the packer's
tie-break order when two windows admit the same start.
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, List, Optional, Tuple

from event_scheduler.errors import ScheduleConfigurationError
from event_scheduler.models.event import Competition
from event_scheduler.models.playing_field import PlayingField
from event_scheduler.models.time_slot import TimeSlot


@dataclass(frozen=True)
class AvailabilityWindow:
    start: datetime
    end: datetime
    field_id: str
    field_number: int
    division_ids: Tuple[str, ...] = ()  # empty = all divisions
    slot_id: Optional[str] = None

    def allows_division(self, division_id: str) -> bool:
        return not self.division_ids or division_id in self.division_ids

    def contains(self, start: datetime, end: datetime) -> bool:
        return self.start <= start and end <= self.end


def get_window_sort_key(window: AvailabilityWindow) -> Tuple:
    return (window.start, window.field_number, window.field_id, window.end)


def has_templates(event: Competition) -> bool:
    if event.time_slots:
        return True
    return any(f.rental_slots for f in event.fields.values())


def _slot_days(slot: TimeSlot, first: date, last: date) -> Iterator[date]:
    if not slot.repeating:
        if first <= slot.start_date <= last:
            yield slot.start_date
        return

    lo = max(first, slot.start_date)
    hi = last if slot.end_date is None else min(last, slot.end_date)
    weekdays = set(slot.weekdays())
    day = lo
    while day <= hi:
        if day.weekday() in weekdays:
            yield day
        day += timedelta(days=1)


def _expand_slot(
    slot: TimeSlot,
    field: PlayingField,
    range_start: datetime,
    range_end: datetime,
) -> List[AvailabilityWindow]:
    if slot.end_time_minutes <= slot.start_time_minutes:
        raise ScheduleConfigurationError(
            f"Time slot {slot.id} must end after it starts on the same day; "
            "split windows that cross midnight into two slots"
        )
    windows: List[AvailabilityWindow] = []
    for day in _slot_days(slot, range_start.date(), range_end.date()):
        midnight = datetime.combine(day, time())
        start = max(midnight + timedelta(minutes=slot.start_time_minutes), range_start)
        end = min(midnight + timedelta(minutes=slot.end_time_minutes), range_end)
        if end <= start:
            continue
        windows.append(
            AvailabilityWindow(
                start=start,
                end=end,
                field_id=field.id,
                field_number=field.field_number,
                division_ids=tuple(slot.division_ids),
                slot_id=slot.id,
            )
        )
    return windows


def expand_availability(
    event: Competition,
    range_start: datetime,
    range_end: datetime,
) -> List[AvailabilityWindow]:
    """
    Concrete availability windows within [range_start, range_end].

    A template without field_id applies to every field of the event. With no
    templates at all, each field is one continuous window over the range.
    """
    if range_end <= range_start:
        return []

    fields = event.sorted_fields()
    windows: List[AvailabilityWindow] = []

    if not has_templates(event):
        for field in fields:
            windows.append(
                AvailabilityWindow(
                    start=range_start,
                    end=range_end,
                    field_id=field.id,
                    field_number=field.field_number,
                )
            )
        return windows

    for slot in event.time_slots:
        targets = fields if slot.field_id is None else [f for f in fields if f.id == slot.field_id]
        for field in targets:
            windows.extend(_expand_slot(slot, field, range_start, range_end))

    for field in fields:
        for slot in field.rental_slots:
            windows.extend(_expand_slot(slot, field, range_start, range_end))

    windows.sort(key=get_window_sort_key)
    return windows


def find_containing_window(
    windows: List[AvailabilityWindow],
    field_id: str,
    division_id: str,
    start: datetime,
    end: datetime,
) -> Optional[AvailabilityWindow]:
    for window in windows:
        if window.field_id == field_id and window.allows_division(division_id) and window.contains(start, end):
            return window
    return None
