"""Repository interfaces and their SQLAlchemy implementations.

Conventions shared by every implementation:
- Getters return None when the row does not exist.
- Mutators (update, delete, update_password) raise the matching
  NotFoundError subclass when no row was affected.
- Listings are ordered deterministically so cached snapshots and fresh
  reads agree.
"""

from __future__ import annotations

from typing import Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from rabbit_ai.core.errors import (
    ConflictError,
    ConversationNotFoundError,
    InvalidCredentialsError,
    MessageNotFoundError,
    UserNotFoundError,
)
from rabbit_ai.core.models import (
    Conversation,
    ConversationStatus,
    Message,
    User,
)
from rabbit_ai.persistence.db import Database
from rabbit_ai.persistence.tables import (
    ConversationTable,
    MessageTable,
    UserTable,
    utcnow,
)
from rabbit_ai.security.passwords import DEFAULT_ROUNDS, hash_password, verify_password

# -----------------------------------------------------------------------------
# Interfaces
# -----------------------------------------------------------------------------


class UserRepository(Protocol):
    async def create(self, user: User) -> User: ...

    async def create_with_password(self, user: User, password: str) -> User: ...

    async def get_by_id(self, user_id: int) -> User | None: ...

    async def get_by_phone(self, phone: str) -> User | None: ...

    async def get_by_github_id(self, github_id: str) -> User | None: ...

    async def get_by_email(self, email: str) -> User | None: ...

    async def get_by_device_id(self, device_id: str) -> User | None: ...

    async def update(self, user: User) -> User: ...

    async def update_password(self, user_id: int, new_password: str) -> None: ...

    async def delete(self, user_id: int) -> None: ...

    async def verify_password(self, phone: str, password: str) -> User: ...

    async def list_users(self, limit: int, offset: int = 0) -> list[User]: ...


class ConversationRepository(Protocol):
    async def create(self, conversation: Conversation) -> Conversation: ...

    async def get_by_id(self, conversation_id: int) -> Conversation | None: ...

    async def get_by_user_id(
        self, user_id: int, limit: int, offset: int = 0
    ) -> list[Conversation]: ...

    async def update(self, conversation: Conversation) -> Conversation: ...

    async def delete(self, conversation_id: int) -> None: ...

    async def get_user_conversation_count(self, user_id: int) -> int: ...


class MessageRepository(Protocol):
    async def create(self, message: Message) -> Message: ...

    async def get_by_id(self, message_id: int) -> Message | None: ...

    async def get_by_conversation_id(
        self, conversation_id: int, limit: int, offset: int = 0
    ) -> list[Message]: ...

    async def get_conversation_messages(self, conversation_id: int) -> list[Message]: ...

    async def update(self, message: Message) -> Message: ...

    async def delete(self, message_id: int) -> None: ...

    async def get_conversation_message_count(self, conversation_id: int) -> int: ...


# -----------------------------------------------------------------------------
# SQLAlchemy implementations
# -----------------------------------------------------------------------------


class SqlUserRepository:
    """Users table access."""

    def __init__(self, db: Database, password_rounds: int = DEFAULT_ROUNDS):
        self.db = db
        self.password_rounds = password_rounds

    async def _get_where(self, *criteria) -> User | None:
        async with self.db.session() as session:
            result = await session.execute(select(UserTable).where(*criteria))
            row = result.scalar_one_or_none()
            return User.model_validate(row) if row is not None else None

    async def create(self, user: User) -> User:
        """Insert a user and return it with its generated ID and timestamps."""
        now = utcnow()
        row = UserTable(
            phone=user.phone,
            password_hash=user.password_hash,
            nickname=user.nickname,
            avatar=user.avatar,
            status=int(user.status),
            github_id=user.github_id,
            email=user.email,
            device_id=user.device_id,
            platform=user.platform,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self.db.session() as session:
                session.add(row)
                await session.flush()
                return User.model_validate(row)
        except IntegrityError as e:
            raise ConflictError("User phone, GitHub ID or device ID is already taken") from e

    async def create_with_password(self, user: User, password: str) -> User:
        hashed = hash_password(password, self.password_rounds)
        return await self.create(user.model_copy(update={"password_hash": hashed}))

    async def get_by_id(self, user_id: int) -> User | None:
        return await self._get_where(UserTable.id == user_id)

    async def get_by_phone(self, phone: str) -> User | None:
        return await self._get_where(UserTable.phone == phone)

    async def get_by_github_id(self, github_id: str) -> User | None:
        return await self._get_where(UserTable.github_id == github_id)

    async def get_by_email(self, email: str) -> User | None:
        return await self._get_where(UserTable.email == email)

    async def get_by_device_id(self, device_id: str) -> User | None:
        return await self._get_where(UserTable.device_id == device_id)

    async def update(self, user: User) -> User:
        """Persist profile fields. The password hash is changed only via update_password."""
        if user.id is None:
            raise UserNotFoundError(None)
        now = utcnow()
        stmt = (
            update(UserTable)
            .where(UserTable.id == user.id)
            .values(
                phone=user.phone,
                nickname=user.nickname,
                avatar=user.avatar,
                status=int(user.status),
                github_id=user.github_id,
                email=user.email,
                device_id=user.device_id,
                platform=user.platform,
                updated_at=now,
            )
        )
        try:
            async with self.db.session() as session:
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    raise UserNotFoundError(user.id)
                row = await session.get(UserTable, user.id, populate_existing=True)
                return User.model_validate(row)
        except IntegrityError as e:
            raise ConflictError("User phone, GitHub ID or device ID is already taken") from e

    async def update_password(self, user_id: int, new_password: str) -> None:
        hashed = hash_password(new_password, self.password_rounds)
        stmt = (
            update(UserTable)
            .where(UserTable.id == user_id)
            .values(password_hash=hashed, updated_at=utcnow())
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise UserNotFoundError(user_id)

    async def delete(self, user_id: int) -> None:
        async with self.db.session() as session:
            result = await session.execute(delete(UserTable).where(UserTable.id == user_id))
            if result.rowcount == 0:
                raise UserNotFoundError(user_id)

    async def verify_password(self, phone: str, password: str) -> User:
        """Return the user if the phone/password pair matches.

        Unknown phones and wrong passwords raise the same error.
        """
        user = await self.get_by_phone(phone)
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        return user

    async def list_users(self, limit: int, offset: int = 0) -> list[User]:
        stmt = select(UserTable).order_by(UserTable.id).limit(limit).offset(offset)
        async with self.db.session() as session:
            result = await session.execute(stmt)
            return [User.model_validate(row) for row in result.scalars()]


class SqlConversationRepository:
    """Conversations table access. Deleting a conversation is a soft delete."""

    def __init__(self, db: Database):
        self.db = db

    async def create(self, conversation: Conversation) -> Conversation:
        now = utcnow()
        row = ConversationTable(
            user_id=conversation.user_id,
            title=conversation.title,
            status=int(conversation.status),
            message_count=conversation.message_count,
            last_message_at=conversation.last_message_at or now,
            created_at=now,
            updated_at=now,
        )
        async with self.db.session() as session:
            session.add(row)
            await session.flush()
            return Conversation.model_validate(row)

    async def get_by_id(self, conversation_id: int) -> Conversation | None:
        """Active conversation by ID; soft-deleted rows read as absent."""
        stmt = select(ConversationTable).where(
            ConversationTable.id == conversation_id,
            ConversationTable.status == int(ConversationStatus.ACTIVE),
        )
        async with self.db.session() as session:
            row = (await session.execute(stmt)).scalar_one_or_none()
            return Conversation.model_validate(row) if row is not None else None

    async def get_by_user_id(
        self, user_id: int, limit: int, offset: int = 0
    ) -> list[Conversation]:
        """A user's active conversations, most recently active first."""
        stmt = (
            select(ConversationTable)
            .where(
                ConversationTable.user_id == user_id,
                ConversationTable.status == int(ConversationStatus.ACTIVE),
            )
            .order_by(ConversationTable.last_message_at.desc(), ConversationTable.id.desc())
            .limit(limit)
            .offset(offset)
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
            return [Conversation.model_validate(row) for row in result.scalars()]

    async def update(self, conversation: Conversation) -> Conversation:
        """Persist title and activity fields of an active conversation.

        Status is owned by delete; a soft-deleted row raises not found.
        """
        if conversation.id is None:
            raise ConversationNotFoundError(None)
        stmt = (
            update(ConversationTable)
            .where(
                ConversationTable.id == conversation.id,
                ConversationTable.status == int(ConversationStatus.ACTIVE),
            )
            .values(
                title=conversation.title,
                message_count=conversation.message_count,
                last_message_at=conversation.last_message_at or utcnow(),
                updated_at=utcnow(),
            )
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise ConversationNotFoundError(conversation.id)
            row = await session.get(ConversationTable, conversation.id, populate_existing=True)
            return Conversation.model_validate(row)

    async def delete(self, conversation_id: int) -> None:
        """Soft delete: flip status to 0. Messages are left in place."""
        stmt = (
            update(ConversationTable)
            .where(ConversationTable.id == conversation_id)
            .values(status=int(ConversationStatus.DELETED), updated_at=utcnow())
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise ConversationNotFoundError(conversation_id)

    async def get_user_conversation_count(self, user_id: int) -> int:
        stmt = select(func.count()).select_from(ConversationTable).where(
            ConversationTable.user_id == user_id,
            ConversationTable.status == int(ConversationStatus.ACTIVE),
        )
        async with self.db.session() as session:
            return int((await session.execute(stmt)).scalar_one())


class SqlMessageRepository:
    """Messages table access. Messages are ordered oldest first."""

    def __init__(self, db: Database):
        self.db = db

    def _ordered(self, conversation_id: int):
        return (
            select(MessageTable)
            .where(MessageTable.conversation_id == conversation_id)
            .order_by(MessageTable.created_at, MessageTable.id)
        )

    async def create(self, message: Message) -> Message:
        row = MessageTable(
            conversation_id=message.conversation_id,
            role=message.role.value,
            content=message.content,
            tokens=message.tokens,
            model=message.model,
            finish_reason=message.finish_reason,
            created_at=utcnow(),
        )
        async with self.db.session() as session:
            session.add(row)
            await session.flush()
            return Message.model_validate(row)

    async def get_by_id(self, message_id: int) -> Message | None:
        async with self.db.session() as session:
            row = await session.get(MessageTable, message_id)
            return Message.model_validate(row) if row is not None else None

    async def get_by_conversation_id(
        self, conversation_id: int, limit: int, offset: int = 0
    ) -> list[Message]:
        stmt = self._ordered(conversation_id).limit(limit).offset(offset)
        async with self.db.session() as session:
            result = await session.execute(stmt)
            return [Message.model_validate(row) for row in result.scalars()]

    async def get_conversation_messages(self, conversation_id: int) -> list[Message]:
        async with self.db.session() as session:
            result = await session.execute(self._ordered(conversation_id))
            return [Message.model_validate(row) for row in result.scalars()]

    async def update(self, message: Message) -> Message:
        if message.id is None:
            raise MessageNotFoundError(None)
        stmt = (
            update(MessageTable)
            .where(MessageTable.id == message.id)
            .values(
                content=message.content,
                tokens=message.tokens,
                model=message.model,
                finish_reason=message.finish_reason,
            )
        )
        async with self.db.session() as session:
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise MessageNotFoundError(message.id)
            row = await session.get(MessageTable, message.id, populate_existing=True)
            return Message.model_validate(row)

    async def delete(self, message_id: int) -> None:
        async with self.db.session() as session:
            stmt = delete(MessageTable).where(MessageTable.id == message_id)
            result = await session.execute(stmt)
            if result.rowcount == 0:
                raise MessageNotFoundError(message_id)

    async def get_conversation_message_count(self, conversation_id: int) -> int:
        stmt = (
            select(func.count())
            .select_from(MessageTable)
            .where(MessageTable.conversation_id == conversation_id)
        )
        async with self.db.session() as session:
            return int((await session.execute(stmt)).scalar_one())
