from typing import List

from sqlmodel import Field, SQLModel

from event_scheduler.models.time_slot import TimeSlot


class PlayingField(SQLModel):
    id: str
    field_number: int = Field(default=0)
    name: str = ""
    # Empty = open to every division
    eligible_division_ids: List[str] = Field(default_factory=list)
    # Private availability calendar; always applies to this field
    rental_slots: List[TimeSlot] = Field(default_factory=list)

    def allows_division(self, division_id: str) -> bool:
        return not self.eligible_division_ids or division_id in self.eligible_division_ids
