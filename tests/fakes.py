"""
In-memory implementations of the store protocols.

They follow the same error contract as stores/postgres.py (ConflictError on
unique violations) so the services can be exercised without a database.
"""
from datetime import datetime

from errors import ConflictError, TransientError
from models.conversation import Conversation, Message
from models.trade_profile import TradeProfile
from models.user import Partition, UserAccount
from security import AuthUser
from stores.base import Stores
from utils import utcnow


class MemoryUserStore:
    def __init__(self, partition: Partition):
        self.partition = partition
        self.rows: dict[str, UserAccount] = {}
        self.fail_delete = False

    async def find_by_id(self, user_id):
        row = self.rows.get(user_id)
        return row.model_copy() if row else None

    async def find_by_email(self, email):
        email = email.strip().lower()
        return next((r.model_copy() for r in self.rows.values() if r.email == email), None)

    async def find_by_phone(self, phone):
        return next((r.model_copy() for r in self.rows.values() if r.phone_number == phone.strip()), None)

    async def find_by_previous_id(self, user_id):
        return next((r.model_copy() for r in self.rows.values() if r.migrated_from_id == user_id), None)

    async def insert(self, account):
        for row in self.rows.values():
            if row.email == account.email or row.phone_number == account.phone_number:
                raise ConflictError("user already exists")
        now = utcnow()
        self.rows[account.id] = account.model_copy(update={"created_at": now, "updated_at": now})
        return account.id

    async def delete(self, user_id):
        if self.fail_delete:
            raise TransientError()
        return self.rows.pop(user_id, None) is not None

    async def list_ids(self):
        return list(self.rows)


class MemoryTradeProfileStore:
    def __init__(self):
        self.rows: dict[str, TradeProfile] = {}

    async def get(self, profile_id):
        row = self.rows.get(profile_id)
        return row.model_copy() if row else None

    async def find_by_owner(self, owner_ref):
        for row in self.rows.values():
            if row.owner_user_id == owner_ref or row.owner_user_id_string == owner_ref:
                return row.model_copy()
        return None

    async def insert(self, profile):
        if any(r.owner_user_id == profile.owner_user_id for r in self.rows.values()):
            raise ConflictError("trade profile already exists")
        self.rows[profile.id] = profile.model_copy(update={"created_at": utcnow()})
        return profile.id

    async def search(self, city=None, skill=None, limit=50):
        found = [
            r for r in self.rows.values()
            if (not city or r.city.lower() == city.lower())
            and (not skill or skill.lower() in [s.lower() for s in r.skills])
        ]
        found.sort(key=lambda r: r.created_at, reverse=True)
        return found[:limit]


class MemoryConversationStore:
    def __init__(self):
        self.rows: dict[str, Conversation] = {}
        self.fail_touch = False

    async def get(self, conversation_id):
        row = self.rows.get(conversation_id)
        return row.model_copy(deep=True) if row else None

    async def list_for_participants(self, keys):
        found = [r.model_copy(deep=True) for r in self.rows.values() if set(r.participants) & set(keys)]
        found.sort(key=lambda r: r.updated_at, reverse=True)
        return found

    async def find_by_pair_keys(self, pair_keys):
        found = [r for r in self.rows.values() if r.pair_key in pair_keys]
        found.sort(key=lambda r: r.created_at)
        return found[0].model_copy(deep=True) if found else None

    async def insert(self, conversation):
        if any(r.pair_key == conversation.pair_key for r in self.rows.values()):
            raise ConflictError("conversation already exists")
        self.rows[conversation.id] = conversation.model_copy(deep=True)
        return conversation.id

    async def touch(self, conversation_id, last_message, at: datetime):
        if self.fail_touch:
            raise TransientError()
        row = self.rows[conversation_id]
        row.last_message = last_message
        row.updated_at = at


class MemoryMessageStore:
    def __init__(self):
        self.rows: list[Message] = []

    async def insert(self, message):
        self.rows.append(message.model_copy())
        return message.id

    async def list_for_conversation(self, conversation_id):
        found = [m.model_copy() for m in self.rows if m.conversation_id == conversation_id]
        found.sort(key=lambda m: m.created_at)
        return found


class BrokenUserStore(MemoryUserStore):
    """A partition whose database is unreachable."""

    async def find_by_id(self, user_id):
        raise TransientError()

    async def find_by_previous_id(self, user_id):
        raise TransientError()


def memory_stores() -> Stores:
    return Stores(
        tradesmen=MemoryUserStore(Partition.TRADESMEN),
        customers=MemoryUserStore(Partition.CUSTOMERS),
        profiles=MemoryTradeProfileStore(),
        conversations=MemoryConversationStore(),
        messages=MemoryMessageStore(),
    )


def caller_of(account: UserAccount) -> AuthUser:
    """The AuthUser a cookie for this account would carry."""
    return AuthUser(id=account.id, email=account.email, role=account.role)
