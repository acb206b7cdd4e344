# stores/base.py
"""
Store interfaces used by the services.

The services only ever talk to these protocols, so the resolution, migration
and messaging logic can run against PostgreSQL (stores/postgres.py) or the
in-memory fakes used by the tests.

Error contract for every implementation:
- unique constraint violations raise errors.ConflictError
- unreachable database / pool timeouts raise errors.TransientError
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from models.conversation import Conversation, Message
from models.trade_profile import TradeProfile
from models.user import Partition, UserAccount


class UserStore(Protocol):
    """The `users` table of one partition."""

    partition: Partition

    async def find_by_id(self, user_id: str) -> UserAccount | None: ...

    async def find_by_email(self, email: str) -> UserAccount | None: ...

    async def find_by_phone(self, phone: str) -> UserAccount | None: ...

    async def find_by_previous_id(self, user_id: str) -> UserAccount | None: ...

    async def insert(self, account: UserAccount) -> str: ...

    async def delete(self, user_id: str) -> bool: ...

    async def list_ids(self) -> list[str]: ...


class TradeProfileStore(Protocol):
    async def get(self, profile_id: str) -> TradeProfile | None: ...

    async def find_by_owner(self, owner_ref: str) -> TradeProfile | None: ...

    async def insert(self, profile: TradeProfile) -> str: ...

    async def search(self, city: str | None = None, skill: str | None = None, limit: int = 50) -> list[TradeProfile]: ...


class ConversationStore(Protocol):
    async def get(self, conversation_id: str) -> Conversation | None: ...

    async def list_for_participants(self, keys: set[str]) -> list[Conversation]: ...

    async def find_by_pair_keys(self, pair_keys: list[str]) -> Conversation | None: ...

    async def insert(self, conversation: Conversation) -> str: ...

    async def touch(self, conversation_id: str, last_message: str, at: datetime) -> None: ...


class MessageStore(Protocol):
    async def insert(self, message: Message) -> str: ...

    async def list_for_conversation(self, conversation_id: str) -> list[Message]: ...


@dataclass
class Stores:
    """Everything a request needs, built per request from the app's pools."""

    tradesmen: UserStore
    customers: UserStore
    profiles: TradeProfileStore
    conversations: ConversationStore
    messages: MessageStore
