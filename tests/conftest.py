import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from lostlink.db.db import init_db
from lostlink.db.repositories import ChatRepository, ItemRepository, MatchRepository, NotificationRepository
from lostlink.models.item import Item
from lostlink.models.location import StructuredLocation
from lostlink.services.lifecycle import MatchLifecycleManager
from lostlink.services.notifier import NotificationEmitter, RecentDeliveryGuard
from lostlink.services.scorer import ScoreResult

BASE_TIME = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
PARIS = StructuredLocation(lat=48.8566, lng=2.3522)


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


class RecordingPublisher:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[Tuple[str, str, dict]] = []
        self.online: Set[str] = set()

    def is_online(self, room: str) -> bool:
        return room in self.online

    async def publish(self, room: str, event: str, payload: dict) -> None:
        if self.fail:
            raise ConnectionError("socket gone")
        self.calls.append((room, event, payload))


class FakeScorer:
    """Scores by candidate description; values may be ints, ScoreResults or exceptions."""

    def __init__(self, scores: Optional[Dict[str, object]] = None, default: int = 0):
        self.scores = scores or {}
        self.default = default
        self.calls: List[Tuple[Item, Item]] = []

    async def evaluate(self, lost_item: Item, found_item: Item) -> ScoreResult:
        self.calls.append((lost_item, found_item))

        key = found_item.description if found_item.description in self.scores else lost_item.description
        value = self.scores.get(key, self.default)

        if isinstance(value, Exception):
            raise value
        if isinstance(value, ScoreResult):
            return value
        return ScoreResult(confidence_score=value, reasoning=f"scored {value}")


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session(engine: Engine) -> Iterator[Session]:
    with Session(engine) as session:
        yield session


@pytest.fixture
def item_factory(session: Session) -> Callable[..., Item]:
    repo = ItemRepository(session)

    def factory(
        item_type: str = "lost",
        user_id: str = "user-lost",
        description: str = "Black phone",
        category: Optional[str] = "Electronics",
        observed_at: Optional[datetime] = None,
        location=PARIS,
        is_resolved: bool = False,
        persist: bool = True,
        **fields,
    ) -> Item:
        item = Item(
            user_id=user_id,
            type=item_type,
            description=description,
            category=category,
            observed_at=observed_at or BASE_TIME,
            is_resolved=is_resolved,
            image=fields.pop("image", ""),
            **fields,
        )
        item.set_location(location)

        if persist:
            return repo.add(item)
        return item

    return factory


@pytest.fixture
def lost_and_found(item_factory) -> Tuple[Item, Item]:
    lost = item_factory(item_type="lost", user_id="alice", description="Black phone")
    found = item_factory(
        item_type="found",
        user_id="bob",
        description="Found black phone",
        observed_at=BASE_TIME + timedelta(hours=3),
    )
    return lost, found


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def emitter(publisher: RecordingPublisher, clock: FakeClock) -> NotificationEmitter:
    return NotificationEmitter(publisher, RecentDeliveryGuard(cooldown=5.0, clock=clock))


@pytest.fixture
def lifecycle(session: Session, emitter: NotificationEmitter) -> MatchLifecycleManager:
    return MatchLifecycleManager(
        items=ItemRepository(session),
        matches=MatchRepository(session),
        notifications=NotificationRepository(session),
        chats=ChatRepository(session),
        emitter=emitter,
    )
