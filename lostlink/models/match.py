import enum
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone

from lostlink.errors import MatchAlreadyConfirmedError, MatchForbiddenError


class MatchSide(str, enum.Enum):
    USER1 = "user1"
    USER2 = "user2"

    @property
    def other(self) -> "MatchSide":
        return MatchSide.USER2 if self is MatchSide.USER1 else MatchSide.USER1

    @property
    def flag(self) -> str:
        return "user1_confirmed" if self is MatchSide.USER1 else "user2_confirmed"


class MatchBase(SQLModel):
    # item1 triggered the match, item2 is the candidate it was compared against
    item1_id: uuid.UUID = Field(foreign_key="items.id", index=True)
    user_id1: str = Field(index=True)
    item2_id: uuid.UUID = Field(foreign_key="items.id", index=True)
    user_id2: str = Field(index=True)

    match_score: int

    user1_confirmed: bool = Field(default=False)
    user2_confirmed: bool = Field(default=False)


class Match(MatchBase, table=True):
    __tablename__ = "matches"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def is_party(self, user_id: str) -> bool:
        return user_id in (self.user_id1, self.user_id2)

    def is_confirmed(self, side: MatchSide) -> bool:
        return getattr(self, side.flag)

    def side_for(self, user_id: str) -> MatchSide:
        """Side the user may confirm next.

        A user owning both items confirms user1 first, then user2.
        """
        if not self.is_party(user_id):
            raise MatchForbiddenError(self.id, user_id)

        for side, owner in ((MatchSide.USER1, self.user_id1), (MatchSide.USER2, self.user_id2)):
            if owner == user_id and not self.is_confirmed(side):
                return side

        raise MatchAlreadyConfirmedError(self.id, user_id)


class MatchRead(MatchBase):
    id: uuid.UUID
    created_at: datetime
