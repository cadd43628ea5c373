from datetime import date
from typing import List, Optional

from sqlmodel import Field, SQLModel

MINUTES_PER_DAY = 24 * 60


class TimeSlot(SQLModel):
    """
    Availability template.

    repeating=True: weekly on day_of_week (or every day in days_of_week) between
    start_date and end_date (None = open-ended).
    repeating=False: one window on start_date.

    start_time_minutes < end_time_minutes, both within one day; a window that
    crosses midnight is two slots.
    """

    id: str
    day_of_week: Optional[int] = Field(default=None)  # 0=Monday, 6=Sunday
    days_of_week: List[int] = Field(default_factory=list)  # overrides day_of_week when set
    start_date: date
    end_date: Optional[date] = Field(default=None)
    repeating: bool = Field(default=True)
    start_time_minutes: int = Field(default=0)
    end_time_minutes: int = Field(default=MINUTES_PER_DAY)
    price: Optional[float] = Field(default=None)
    field_id: Optional[str] = Field(default=None)  # None = any field of the event
    division_ids: List[str] = Field(default_factory=list)  # empty = all divisions

    def weekdays(self) -> List[int]:
        if self.days_of_week:
            return sorted({d % 7 for d in self.days_of_week})
        if self.day_of_week is not None:
            return [self.day_of_week % 7]
        return [self.start_date.weekday()]

    def allows_division(self, division_id: str) -> bool:
        return not self.division_ids or division_id in self.division_ids
