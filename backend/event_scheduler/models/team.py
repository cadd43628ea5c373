from typing import List, Optional

from sqlmodel import Field, SQLModel


class Team(SQLModel):
    id: str
    name: str = ""
    seed: int = Field(default=0)  # 1-based seed (1=highest); 0 = unseeded
    division_id: Optional[str] = Field(default=None)  # None = event's implicit OPEN division
    captain_id: Optional[str] = Field(default=None)
    player_ids: List[str] = Field(default_factory=list)

    # Mutated by match finalization
    wins: int = Field(default=0)
    losses: int = Field(default=0)
