import logging
import uuid
from dataclasses import dataclass
from typing import List

from sqlmodel import Session

from lostlink.db.db import session_scope
from lostlink.db.repositories import ChatRepository, ItemRepository, MatchRepository, NotificationRepository
from lostlink.models.match import Match
from lostlink.services.lifecycle import MatchLifecycleManager
from lostlink.services.matching import MatchingOrchestrator
from lostlink.services.notifier import NotificationEmitter
from lostlink.services.scorer import MatchScorer
from lostlink.services.vision import GoogleVisionClient

logger = logging.getLogger(__name__)


@dataclass
class MatchingServices:
    """Process-wide collaborators, built once at startup."""

    scorer: MatchScorer
    vision: GoogleVisionClient
    emitter: NotificationEmitter

    def lifecycle(self, session: Session) -> MatchLifecycleManager:
        return MatchLifecycleManager(
            items=ItemRepository(session),
            matches=MatchRepository(session),
            notifications=NotificationRepository(session),
            chats=ChatRepository(session),
            emitter=self.emitter,
        )

    def orchestrator(self, session: Session) -> MatchingOrchestrator:
        return MatchingOrchestrator(items=ItemRepository(session), scorer=self.scorer)


async def run_matching_pipeline(item_id: uuid.UUID, services: MatchingServices, bind=None) -> List[Match]:
    """Analyze a freshly stored item and propose matches for it.

    Runs after the upload request has returned, so every failure is logged
    and swallowed.
    """
    try:
        with session_scope(bind) as session:
            items = ItemRepository(session)

            item = items.find_by_id(item_id)
            if not item:
                logger.warning("Item %s vanished before matching", item_id)
                return []

            if item.image:
                summary = await services.vision.analyze(item.image)
                if not summary.is_empty:
                    item = items.update_vision(item_id, summary) or item

            candidates = await services.orchestrator(session).find_potential_matches(item)
            return await services.lifecycle(session).propose_matches(item, candidates)
    except Exception:
        logger.exception("Matching pipeline failed for item %s", item_id)
        return []
