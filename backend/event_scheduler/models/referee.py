from typing import List, Optional

from sqlmodel import Field, SQLModel


class Referee(SQLModel):
    """Official referee (user record)"""

    id: str
    first_name: Optional[str] = Field(default=None)
    last_name: Optional[str] = Field(default=None)
    user_name: Optional[str] = Field(default=None)
    team_ids: List[str] = Field(default_factory=list)
    # Empty = may officiate any division
    division_ids: List[str] = Field(default_factory=list)

    def allows_division(self, division_id: str) -> bool:
        return not self.division_ids or division_id in self.division_ids
