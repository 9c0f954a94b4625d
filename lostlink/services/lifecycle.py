"""Match lifecycle: proposal, per-user confirmation and cleanup.

A match moves Proposed -> PartiallyConfirmed -> FullyConfirmed, or is deleted
on the way. Confirmation is optimistic: each request writes its own flag and
then re-reads the stored match, so only a request that sees both flags set
runs the cleanup cascade. The cascade is a chain of independent idempotent
steps; a failed step is logged and the rest still run.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Union

from lostlink import config
from lostlink.db.repositories import ChatRepository, ItemRepository, MatchRepository, NotificationRepository
from lostlink.errors import MatchForbiddenError, MatchNotFoundError, PersistenceError
from lostlink.models.item import Item
from lostlink.models.match import Match, MatchRead, MatchSide
from lostlink.models.notification import MATCH_FOUND, Notification
from lostlink.services.matching import MatchCandidate
from lostlink.services.notifier import NotificationEmitter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PartiallyConfirmed:
    match: MatchRead
    confirmed_side: MatchSide
    awaiting_side: MatchSide


@dataclass(frozen=True)
class FullyConfirmed:
    match: MatchRead


ConfirmOutcome = Union[PartiallyConfirmed, FullyConfirmed]


class MatchLifecycleManager:
    def __init__(
        self,
        items: ItemRepository,
        matches: MatchRepository,
        notifications: NotificationRepository,
        chats: ChatRepository,
        emitter: NotificationEmitter,
        threshold: int = config.MATCH_SCORE_THRESHOLD,
    ):
        self.items = items
        self.matches = matches
        self.notifications = notifications
        self.chats = chats
        self.emitter = emitter
        self.threshold = threshold

    # Proposal

    async def propose_matches(self, new_item: Item, candidates: Iterable[MatchCandidate]) -> List[Match]:
        created = []

        for candidate in candidates:
            if candidate.score <= self.threshold:
                continue

            if candidate.item.id == new_item.id or candidate.item.type == new_item.type:
                logger.warning("Refusing to pair item %s with %s", new_item.id, candidate.item.id)
                continue

            try:
                match = await self._propose(new_item, candidate)
            except PersistenceError:
                logger.exception("Abandoning match proposal %s <-> %s", new_item.id, candidate.item.id)
                continue

            created.append(match)

        if created:
            logger.info("Proposed %d matches for item %s", len(created), new_item.id)

        return created

    async def _propose(self, new_item: Item, candidate: MatchCandidate) -> Match:
        match = self.matches.create(Match(
            item1_id=new_item.id,
            user_id1=new_item.user_id,
            item2_id=candidate.item.id,
            user_id2=candidate.item.user_id,
            match_score=candidate.score,
        ))

        recipients = [(new_item.user_id, new_item), (candidate.item.user_id, candidate.item)]
        stored = []

        try:
            for user_id, own_item in recipients:
                stored.append(self.notifications.create(Notification(
                    user_id=user_id,
                    type=MATCH_FOUND,
                    title="Potential Match Found!",
                    message=(
                        f"We found a potential match for your {own_item.type} item"
                        f" ({candidate.score}% confidence)."
                    ),
                    match_id=match.id,
                )))
        except PersistenceError:
            self._delete_matches([match.id])
            raise

        for notification in stored:
            await self.emitter.emit(notification.user_id, notification)

        return match

    # Confirmation

    async def confirm_match(self, match_id: uuid.UUID, user_id: str) -> ConfirmOutcome:
        match = self.matches.find_by_id(match_id)
        if not match:
            raise MatchNotFoundError(match_id)

        # raises MatchForbiddenError / MatchAlreadyConfirmedError
        side = match.side_for(user_id)

        updated = self.matches.update_confirmation(match_id, side)
        if not updated:
            raise MatchNotFoundError(match_id)

        snapshot = MatchRead.model_validate(updated)

        if not snapshot.user1_confirmed or not snapshot.user2_confirmed:
            logger.info("User %s confirmed match %s, awaiting %s", user_id, match_id, side.other.value)
            return PartiallyConfirmed(match=snapshot, confirmed_side=side, awaiting_side=side.other)

        logger.info("Match %s fully confirmed, running cleanup", match_id)
        self.run_confirmation_cascade(snapshot)
        return FullyConfirmed(match=snapshot)

    def run_confirmation_cascade(self, match: MatchRead) -> None:
        item_ids = [match.item1_id, match.item2_id]

        for item_id in item_ids:
            self._attempt("resolve item", self.items.update_resolved, item_id, True)

        self._attempt("delete notifications", self.notifications.delete_for_matches, [match.id])
        self._attempt("delete chat messages", self.chats.delete_for_matches, [match.id])
        self._attempt("delete match", self.matches.delete_by_id, match.id)

        # the same items may have been proposed in other pairs
        others = self._attempt("find related matches", self.matches.find_referencing_items, item_ids) or []
        self._delete_matches([other.id for other in others])

    # Deletion

    def delete_match(self, match_id: uuid.UUID, user_id: Optional[str] = None) -> None:
        match = self.matches.find_by_id(match_id)
        if not match:
            raise MatchNotFoundError(match_id)

        if user_id is not None and not match.is_party(user_id):
            raise MatchForbiddenError(match_id, user_id)

        self.notifications.delete_for_matches([match_id])
        self.chats.delete_for_matches([match_id])
        self.matches.delete_by_id(match_id)
        logger.info("Deleted match %s", match_id)

    def purge_item(self, item_id: uuid.UUID) -> int:
        """Remove every match that references an item about to be deleted."""
        related = self.matches.find_referencing_items([item_id])
        match_ids = [match.id for match in related]

        self.notifications.delete_for_matches(match_ids)
        self.chats.delete_for_matches(match_ids)
        self.matches.delete_many(match_ids)
        return len(match_ids)

    # Helpers

    def _delete_matches(self, match_ids: List[uuid.UUID]) -> None:
        if not match_ids:
            return

        # children before their matches
        self._attempt("delete related notifications", self.notifications.delete_for_matches, match_ids)
        self._attempt("delete related chat messages", self.chats.delete_for_matches, match_ids)
        self._attempt("delete related matches", self.matches.delete_many, match_ids)

    def _attempt(self, step: str, func: Callable, *args):
        try:
            return func(*args)
        except PersistenceError:
            logger.exception("Cleanup step '%s' failed for %s", step, args)
            return None
