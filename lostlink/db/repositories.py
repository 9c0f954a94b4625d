"""SQLModel-backed stores for items, matches, notifications and chat messages.

Every write commits on its own. Deletes and flag updates are idempotent so
a partially applied cleanup can simply be run again.
"""

import logging
import uuid
from contextlib import contextmanager
from typing import Iterable, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, func, or_, select

from lostlink.errors import PersistenceError
from lostlink.models.chat_message import MESSAGE_STATUSES, ChatMessage
from lostlink.models.item import Item
from lostlink.models.match import Match, MatchSide
from lostlink.models.notification import Notification
from lostlink.models.vision import VisionSummary

logger = logging.getLogger(__name__)


class _Repository:
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _write(self):
        try:
            yield
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(str(exc)) from exc

    @contextmanager
    def _read(self):
        try:
            yield
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(str(exc)) from exc


class ItemRepository(_Repository):
    def add(self, item: Item) -> Item:
        with self._write():
            self.session.add(item)
        self.session.refresh(item)
        return item

    def find_by_id(self, item_id: uuid.UUID) -> Optional[Item]:
        with self._read():
            return self.session.get(Item, item_id)

    def find(self, item_type: Optional[str] = None, is_resolved: Optional[bool] = None) -> List[Item]:
        query = select(Item).order_by(Item.created_at)

        if item_type is not None:
            query = query.where(Item.type == item_type)
        if is_resolved is not None:
            query = query.where(Item.is_resolved == is_resolved)

        with self._read():
            return list(self.session.exec(query).all())

    def update_resolved(self, item_id: uuid.UUID, resolved: bool) -> bool:
        """Returns True if the row changed."""
        with self._write():
            item = self.session.get(Item, item_id)
            if not item or item.is_resolved == resolved:
                return False

            item.is_resolved = resolved
            self.session.add(item)
        return True

    def update_vision(self, item_id: uuid.UUID, summary: VisionSummary) -> Optional[Item]:
        with self._write():
            item = self.session.get(Item, item_id)
            if not item:
                return None

            item.vision_labels = list(summary.labels)
            item.vision_objects = [obj.model_dump() for obj in summary.objects]
            self.session.add(item)
        self.session.refresh(item)
        return item

    def update_fields(self, item_id: uuid.UUID, values: dict) -> Optional[Item]:
        with self._write():
            item = self.session.get(Item, item_id)
            if not item:
                return None

            for field, value in values.items():
                if field == "location":
                    item.set_location(value)
                else:
                    setattr(item, field, value)
            self.session.add(item)
        self.session.refresh(item)
        return item

    def delete_by_id(self, item_id: uuid.UUID) -> bool:
        with self._write():
            item = self.session.get(Item, item_id)
            if not item:
                return False
            self.session.delete(item)
        return True


class MatchRepository(_Repository):
    def create(self, match: Match) -> Match:
        with self._write():
            self.session.add(match)
        self.session.refresh(match)
        return match

    def find_by_id(self, match_id: uuid.UUID) -> Optional[Match]:
        with self._read():
            return self.session.get(Match, match_id)

    def find_for_user(self, user_id: str) -> List[Match]:
        query = (
            select(Match)
            .where(or_(Match.user_id1 == user_id, Match.user_id2 == user_id))
            .order_by(Match.created_at.desc())
        )
        with self._read():
            return list(self.session.exec(query).all())

    def find_referencing_items(self, item_ids: Iterable[uuid.UUID]) -> List[Match]:
        ids = list(item_ids)
        if not ids:
            return []

        query = select(Match).where(or_(Match.item1_id.in_(ids), Match.item2_id.in_(ids)))
        with self._read():
            return list(self.session.exec(query).all())

    def update_confirmation(self, match_id: uuid.UUID, side: MatchSide) -> Optional[Match]:
        """Set one side's flag and return the match as stored afterwards.

        Only the flag column of ``side`` is written, so two users confirming
        at the same time never overwrite each other.
        """
        with self._write():
            match = self.session.get(Match, match_id)
            if not match:
                return None

            setattr(match, side.flag, True)
            self.session.add(match)

        with self._read():
            self.session.refresh(match)
        return match

    def delete_by_id(self, match_id: uuid.UUID) -> bool:
        with self._write():
            match = self.session.get(Match, match_id)
            if not match:
                return False
            self.session.delete(match)
        return True

    def delete_many(self, match_ids: Iterable[uuid.UUID]) -> int:
        ids = list(match_ids)
        if not ids:
            return 0

        with self._write():
            matches = self.session.exec(select(Match).where(Match.id.in_(ids))).all()
            for match in matches:
                self.session.delete(match)
        return len(matches)


class NotificationRepository(_Repository):
    def create(self, notification: Notification) -> Notification:
        with self._write():
            self.session.add(notification)
        self.session.refresh(notification)
        return notification

    def find_by_id(self, notification_id: uuid.UUID) -> Optional[Notification]:
        with self._read():
            return self.session.get(Notification, notification_id)

    def find_for_user(self, user_id: str, limit: int = 20, unread_only: bool = False) -> List[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)

        if unread_only:
            query = query.where(Notification.is_read == False)  # noqa: E712

        query = query.order_by(Notification.created_at.desc()).limit(limit)

        with self._read():
            return list(self.session.exec(query).all())

    def find_for_match(self, match_id: uuid.UUID) -> List[Notification]:
        with self._read():
            return list(self.session.exec(
                select(Notification).where(Notification.match_id == match_id)
            ).all())

    def count_unread(self, user_id: str) -> int:
        with self._read():
            return self.session.exec(
                select(func.count(Notification.id))
                .where(Notification.user_id == user_id)
                .where(Notification.is_read == False)  # noqa: E712
            ).one()

    def update_read_flag(self, notification_id: uuid.UUID, user_id: str, is_read: bool = True) -> Optional[Notification]:
        with self._write():
            notif = self.session.exec(
                select(Notification)
                .where(Notification.id == notification_id)
                .where(Notification.user_id == user_id)
            ).first()

            if not notif:
                return None

            notif.is_read = is_read
            self.session.add(notif)
        self.session.refresh(notif)
        return notif

    def mark_all_read(self, user_id: str) -> int:
        with self._write():
            notifications = self.session.exec(
                select(Notification)
                .where(Notification.user_id == user_id)
                .where(Notification.is_read == False)  # noqa: E712
            ).all()

            for notif in notifications:
                notif.is_read = True
                self.session.add(notif)
        return len(notifications)

    def delete_by_id(self, notification_id: uuid.UUID, user_id: Optional[str] = None) -> bool:
        with self._write():
            notif = self.session.get(Notification, notification_id)
            if not notif or (user_id is not None and notif.user_id != user_id):
                return False
            self.session.delete(notif)
        return True

    def delete_for_matches(self, match_ids: Iterable[uuid.UUID]) -> int:
        ids = list(match_ids)
        if not ids:
            return 0

        with self._write():
            notifications = self.session.exec(
                select(Notification).where(Notification.match_id.in_(ids))
            ).all()
            for notif in notifications:
                self.session.delete(notif)
        return len(notifications)


class ChatRepository(_Repository):
    def create(self, message: ChatMessage) -> ChatMessage:
        with self._write():
            self.session.add(message)
        self.session.refresh(message)
        return message

    def find_for_match(self, match_id: uuid.UUID, limit: int = 100) -> List[ChatMessage]:
        query = (
            select(ChatMessage)
            .where(ChatMessage.match_id == match_id)
            .order_by(ChatMessage.created_at)
            .limit(limit)
        )
        with self._read():
            return list(self.session.exec(query).all())

    def delete_for_matches(self, match_ids: Iterable[uuid.UUID]) -> int:
        ids = list(match_ids)
        if not ids:
            return 0

        with self._write():
            messages = self.session.exec(
                select(ChatMessage).where(ChatMessage.match_id.in_(ids))
            ).all()
            for message in messages:
                self.session.delete(message)
        return len(messages)

    def find_by_id(self, message_id: uuid.UUID) -> Optional[ChatMessage]:
        with self._read():
            return self.session.get(ChatMessage, message_id)

    def update_status(self, message_id: uuid.UUID, status: str) -> Optional[ChatMessage]:
        """Move a message forward to ``status``; a read message stays read."""
        with self._write():
            message = self.session.get(ChatMessage, message_id)
            if not message:
                return None

            if MESSAGE_STATUSES.index(status) > MESSAGE_STATUSES.index(message.status):
                message.status = status
                self.session.add(message)
        self.session.refresh(message)
        return message

    def find_conversations(self, user_id: str) -> List[dict]:
        """One entry per match the user has chatted in, most recent first."""
        query = (
            select(ChatMessage)
            .where(or_(ChatMessage.sender_id == user_id, ChatMessage.receiver_id == user_id))
            .order_by(ChatMessage.created_at.desc())
        )
        with self._read():
            messages = self.session.exec(query).all()

        conversations = {}
        for message in messages:
            entry = conversations.get(message.match_id)
            if entry is None:
                other = message.receiver_id if message.sender_id == user_id else message.sender_id
                entry = conversations[message.match_id] = {
                    "match_id": message.match_id,
                    "other_user_id": other,
                    "last_message": message,
                    "unread_count": 0,
                }

            if message.receiver_id == user_id and message.status != "read":
                entry["unread_count"] += 1

        return list(conversations.values())
