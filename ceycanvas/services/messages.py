from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ceycanvas.database import session_scope
from ceycanvas.models.message import ConversationEntry, ConversationMember, MessageEntry
from ceycanvas.models.user import UserEntry
from ceycanvas.schemas.messages import (
    ConversationResponse,
    LastMessage,
    MessageResponse,
    Participant,
    Sender,
)


class ConversationNotFoundError(LookupError):
    pass


class ConversationAccessError(PermissionError):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _sort_key(value: datetime | None) -> float:
    if value is None:
        return float("-inf")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


class MessageStore:
    """Persisted two-party conversations; live delivery goes through the relay."""

    def list_conversations(self, user_id: int) -> list[ConversationResponse]:
        with session_scope() as session:
            conversations = self._conversations_for(session, user_id)
            views = [self._conversation_view(session, entry, user_id) for entry in conversations]
        views.sort(
            key=lambda view: _sort_key(view.last_message.timestamp if view.last_message else None),
            reverse=True,
        )
        return views

    def search_conversations(self, user_id: int, query: str) -> list[ConversationResponse]:
        needle = query.strip().lower()
        matches = []
        for view in self.list_conversations(user_id):
            other = next((p for p in view.participants if p.id != user_id), None)
            name_match = other is not None and needle in other.name.lower()
            message_match = (
                view.last_message is not None
                and needle in view.last_message.content.lower()
            )
            if name_match or message_match:
                matches.append(view)
        return matches

    def get_messages(self, conversation_id: int, user_id: int) -> list[MessageResponse]:
        with session_scope() as session:
            self._require_participant(session, conversation_id, user_id)
            rows = session.execute(
                select(MessageEntry, UserEntry)
                .join(UserEntry, UserEntry.id == MessageEntry.sender_id)
                .where(MessageEntry.conversation_id == conversation_id)
                .order_by(MessageEntry.created_at, MessageEntry.id)
            ).all()
            return [self._message_view(message, sender) for message, sender in rows]

    def search_messages(
        self, conversation_id: int, user_id: int, query: str
    ) -> list[MessageResponse]:
        with session_scope() as session:
            self._require_participant(session, conversation_id, user_id)
            rows = session.execute(
                select(MessageEntry, UserEntry)
                .join(UserEntry, UserEntry.id == MessageEntry.sender_id)
                .where(
                    MessageEntry.conversation_id == conversation_id,
                    func.lower(MessageEntry.content).contains(
                        query.strip().lower(), autoescape=True
                    ),
                )
                .order_by(MessageEntry.created_at.desc(), MessageEntry.id.desc())
            ).all()
            return [self._message_view(message, sender) for message, sender in rows]

    def send_message(self, sender_id: int, recipient_id: int, content: str) -> MessageResponse:
        if sender_id == recipient_id:
            raise ValueError("Cannot send a message to yourself")
        now = _utcnow()
        with session_scope() as session:
            sender = session.get(UserEntry, sender_id)
            if sender is None:
                raise ValueError("Sender not found")
            if session.get(UserEntry, recipient_id) is None:
                raise ValueError("Recipient not found")

            conversation = self._find_pair(session, sender_id, recipient_id)
            if conversation is None:
                conversation = ConversationEntry(created_at=now, updated_at=now)
                session.add(conversation)
                session.flush()
                session.add_all(
                    [
                        ConversationMember(
                            conversation_id=conversation.id, user_id=sender_id, unread_count=0
                        ),
                        ConversationMember(
                            conversation_id=conversation.id, user_id=recipient_id, unread_count=0
                        ),
                    ]
                )

            message = MessageEntry(
                conversation_id=conversation.id,
                sender_id=sender_id,
                content=content,
                read=False,
                created_at=now,
            )
            session.add(message)

            conversation.last_message_content = content
            conversation.last_message_sender_id = sender_id
            conversation.last_message_at = now
            conversation.updated_at = now
            session.flush()
            session.execute(
                update(ConversationMember)
                .where(
                    ConversationMember.conversation_id == conversation.id,
                    ConversationMember.user_id == recipient_id,
                )
                .values(unread_count=ConversationMember.unread_count + 1)
            )
            return self._message_view(message, sender)

    def mark_read(self, conversation_id: int, user_id: int) -> list[int]:
        """Mark the other side's messages read and return every participant id."""
        with session_scope() as session:
            participant_ids = self._require_participant(session, conversation_id, user_id)
            session.execute(
                update(MessageEntry)
                .where(
                    MessageEntry.conversation_id == conversation_id,
                    MessageEntry.sender_id != user_id,
                    MessageEntry.read.is_(False),
                )
                .values(read=True)
            )
            session.execute(
                update(ConversationMember)
                .where(
                    ConversationMember.conversation_id == conversation_id,
                    ConversationMember.user_id == user_id,
                )
                .values(unread_count=0)
            )
            return participant_ids

    def _require_participant(
        self, session: Session, conversation_id: int, user_id: int
    ) -> list[int]:
        if session.get(ConversationEntry, conversation_id) is None:
            raise ConversationNotFoundError("Conversation not found")
        participant_ids = list(
            session.execute(
                select(ConversationMember.user_id).where(
                    ConversationMember.conversation_id == conversation_id
                )
            ).scalars()
        )
        if user_id not in participant_ids:
            raise ConversationAccessError("Not authorized")
        return participant_ids

    def _conversations_for(self, session: Session, user_id: int) -> list[ConversationEntry]:
        return list(
            session.execute(
                select(ConversationEntry)
                .join(
                    ConversationMember,
                    ConversationMember.conversation_id == ConversationEntry.id,
                )
                .where(ConversationMember.user_id == user_id)
            ).scalars()
        )

    def _find_pair(
        self, session: Session, first_id: int, second_id: int
    ) -> ConversationEntry | None:
        shared = (
            select(ConversationMember.conversation_id)
            .where(ConversationMember.user_id.in_([first_id, second_id]))
            .group_by(ConversationMember.conversation_id)
            .having(func.count(func.distinct(ConversationMember.user_id)) == 2)
        )
        return session.execute(
            select(ConversationEntry)
            .where(ConversationEntry.id.in_(shared))
            .order_by(ConversationEntry.id)
        ).scalars().first()

    def _conversation_view(
        self, session: Session, entry: ConversationEntry, user_id: int
    ) -> ConversationResponse:
        rows = session.execute(
            select(ConversationMember, UserEntry)
            .join(UserEntry, UserEntry.id == ConversationMember.user_id)
            .where(ConversationMember.conversation_id == entry.id)
            .order_by(ConversationMember.id)
        ).all()
        participants = [
            Participant(
                id=user.id,
                name=user.name,
                email=user.email,
                profile_image=user.profile_image,
            )
            for _, user in rows
        ]
        unread_count = next(
            (member.unread_count for member, _ in rows if member.user_id == user_id), 0
        )
        last_message = None
        if entry.last_message_content is not None:
            last_message = LastMessage(
                content=entry.last_message_content,
                sender_id=entry.last_message_sender_id,
                timestamp=entry.last_message_at,
            )
        return ConversationResponse(
            id=entry.id,
            participants=participants,
            last_message=last_message,
            unread_count=unread_count or 0,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )

    def _message_view(self, message: MessageEntry, sender: UserEntry) -> MessageResponse:
        return MessageResponse(
            id=message.id,
            conversation=message.conversation_id,
            sender=Sender(id=sender.id, name=sender.name, profile_image=sender.profile_image),
            content=message.content,
            read=bool(message.read),
            created_at=message.created_at,
        )


message_store = MessageStore()
