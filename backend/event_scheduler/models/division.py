from typing import List

from sqlmodel import Field, SQLModel


class Division(SQLModel):
    id: str
    name: str = ""
    # Empty = every field of the event
    eligible_field_ids: List[str] = Field(default_factory=list)
