# stores/postgres.py
"""
PostgreSQL implementations of the store protocols.

Each store wraps the AsyncConnectionPool of the database it lives in:
- users: tradesmen pool or customers pool (one store per partition)
- trade_profiles: tradesmen pool
- conversations / messages: default pool

Every call borrows a connection with `async with pool.connection()`, which
commits on success and rolls back on error, then returns it to the pool.
"""
import uuid
from contextlib import asynccontextmanager
from datetime import datetime

import psycopg
from psycopg.errors import UniqueViolation
from psycopg_pool import AsyncConnectionPool

from config import DB_POOL_TIMEOUT
from errors import ConflictError, TransientError
from models.conversation import Conversation, Message
from models.trade_profile import TradeProfile
from models.user import Partition, UserAccount

USER_COLUMNS = "id, name, email, phone_number, password_hash, role, city, migrated_from_id, created_at, updated_at"


def _as_uuid(key) -> uuid.UUID | None:
    """Parse a key for a UUID column; None means "cannot match anything"."""
    try:
        return uuid.UUID(str(key))
    except ValueError:
        return None


def _stringify_ids(row: dict, *columns: str) -> dict:
    for column in columns:
        if row.get(column) is not None:
            row[column] = str(row[column])
    return row


@asynccontextmanager
async def translate_errors(what: str):
    """Map driver errors onto the store error contract."""
    try:
        yield
    except UniqueViolation as e:
        raise ConflictError(f"{what} already exists") from e
    except psycopg.OperationalError as e:
        # Includes psycopg_pool.PoolTimeout
        print(f"ERROR: database unavailable while accessing {what}: {e}")
        raise TransientError() from e


class PostgresUserStore:
    def __init__(self, pool: AsyncConnectionPool, partition: Partition):
        self.pool = pool
        self.partition = partition

    async def _fetch_one(self, where: str, params: tuple) -> UserAccount | None:
        async with translate_errors("user"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute(f"SELECT {USER_COLUMNS} FROM users WHERE {where} LIMIT 1", params)
                    row = await cur.fetchone()
        if not row:
            return None
        return UserAccount(**_stringify_ids(row, "id", "migrated_from_id"))

    async def find_by_id(self, user_id: str) -> UserAccount | None:
        key = _as_uuid(user_id)
        if key is None:
            return None
        return await self._fetch_one("id = %s", (key,))

    async def find_by_email(self, email: str) -> UserAccount | None:
        return await self._fetch_one("email = %s", (email.strip().lower(),))

    async def find_by_phone(self, phone: str) -> UserAccount | None:
        return await self._fetch_one("phone_number = %s", (phone.strip(),))

    async def find_by_previous_id(self, user_id: str) -> UserAccount | None:
        key = _as_uuid(user_id)
        if key is None:
            return None
        return await self._fetch_one("migrated_from_id = %s ORDER BY created_at DESC", (key,))

    async def insert(self, account: UserAccount) -> str:
        async with translate_errors("user"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO users (id, name, email, phone_number, password_hash, role, city, migrated_from_id)
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING id
                        """,
                        (
                            _as_uuid(account.id),
                            account.name,
                            account.email,
                            account.phone_number,
                            account.password_hash,
                            account.role.value,
                            account.city,
                            _as_uuid(account.migrated_from_id) if account.migrated_from_id else None,
                        ),
                    )
                    row = await cur.fetchone()
        return str(row["id"])

    async def delete(self, user_id: str) -> bool:
        key = _as_uuid(user_id)
        if key is None:
            return False
        async with translate_errors("user"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute("DELETE FROM users WHERE id = %s", (key,))
                    return cur.rowcount > 0

    async def list_ids(self) -> list[str]:
        async with translate_errors("user"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT id FROM users ORDER BY created_at")
                    rows = await cur.fetchall()
        return [str(r["id"]) for r in rows]


PROFILE_COLUMNS = (
    "id, owner_user_id, owner_user_id_string, name, email, phone_number, skills, experience, "
    "hourly_rate, city, bio, availability, rating, review_count, profile_image, created_at, updated_at"
)


def _profile_from_row(row: dict) -> TradeProfile:
    _stringify_ids(row, "id", "owner_user_id")
    # NUMERIC columns come back as Decimal
    row["hourly_rate"] = float(row["hourly_rate"])
    row["rating"] = float(row["rating"])
    return TradeProfile(**row)


class PostgresTradeProfileStore:
    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def _fetch(self, where: str, params: tuple, limit: int = 1) -> list[TradeProfile]:
        async with translate_errors("trade profile"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"SELECT {PROFILE_COLUMNS} FROM trade_profiles WHERE {where} "
                        f"ORDER BY created_at DESC LIMIT %s",
                        params + (limit,),
                    )
                    rows = await cur.fetchall()
        return [_profile_from_row(r) for r in rows]

    async def get(self, profile_id: str) -> TradeProfile | None:
        key = _as_uuid(profile_id)
        if key is None:
            return None
        found = await self._fetch("id = %s", (key,))
        return found[0] if found else None

    async def find_by_owner(self, owner_ref: str) -> TradeProfile | None:
        # The owner can be matched through either representation of the id
        key = _as_uuid(owner_ref)
        if key is not None:
            found = await self._fetch("owner_user_id = %s OR owner_user_id_string = %s", (key, str(owner_ref)))
        else:
            found = await self._fetch("owner_user_id_string = %s", (str(owner_ref),))
        return found[0] if found else None

    async def insert(self, profile: TradeProfile) -> str:
        async with translate_errors("trade profile"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO trade_profiles
                        (id, owner_user_id, owner_user_id_string, name, email, phone_number, skills,
                         experience, hourly_rate, city, bio, availability, rating, review_count, profile_image)
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                        RETURNING id
                        """,
                        (
                            _as_uuid(profile.id),
                            _as_uuid(profile.owner_user_id),
                            profile.owner_user_id_string,
                            profile.name,
                            profile.email,
                            profile.phone_number,
                            profile.skills,
                            profile.experience,
                            profile.hourly_rate,
                            profile.city,
                            profile.bio,
                            profile.availability,
                            profile.rating,
                            profile.review_count,
                            profile.profile_image,
                        ),
                    )
                    row = await cur.fetchone()
        return str(row["id"])

    async def search(self, city: str | None = None, skill: str | None = None, limit: int = 50) -> list[TradeProfile]:
        where = "TRUE"
        params = []
        if city:
            where += " AND city ILIKE %s"
            params.append(city.strip())
        if skill:
            where += " AND EXISTS (SELECT 1 FROM unnest(skills) AS s WHERE s ILIKE %s)"
            params.append(skill.strip())
        return await self._fetch(where, tuple(params), limit=limit)


CONVERSATION_COLUMNS = "id, participants, last_message, created_at, updated_at"


def _conversation_from_row(row: dict) -> Conversation:
    return Conversation(**_stringify_ids(row, "id"))


class PostgresConversationStore:
    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def get(self, conversation_id: str) -> Conversation | None:
        key = _as_uuid(conversation_id)
        if key is None:
            return None
        async with translate_errors("conversation"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute(f"SELECT {CONVERSATION_COLUMNS} FROM conversations WHERE id = %s", (key,))
                    row = await cur.fetchone()
        return _conversation_from_row(row) if row else None

    async def list_for_participants(self, keys: set[str]) -> list[Conversation]:
        if not keys:
            return []
        async with translate_errors("conversation"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    # && = array overlap, served by the GIN index on participants
                    await cur.execute(
                        f"SELECT {CONVERSATION_COLUMNS} FROM conversations "
                        f"WHERE participants && %s::text[] ORDER BY updated_at DESC",
                        (sorted(keys),),
                    )
                    rows = await cur.fetchall()
        return [_conversation_from_row(r) for r in rows]

    async def find_by_pair_keys(self, pair_keys: list[str]) -> Conversation | None:
        if not pair_keys:
            return None
        async with translate_errors("conversation"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        f"SELECT {CONVERSATION_COLUMNS} FROM conversations "
                        f"WHERE pair_key = ANY(%s) ORDER BY created_at ASC LIMIT 1",
                        (pair_keys,),
                    )
                    row = await cur.fetchone()
        return _conversation_from_row(row) if row else None

    async def insert(self, conversation: Conversation) -> str:
        async with translate_errors("conversation"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO conversations (id, participants, pair_key, last_message, created_at, updated_at)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        RETURNING id
                        """,
                        (
                            _as_uuid(conversation.id),
                            conversation.participants,
                            conversation.pair_key,
                            conversation.last_message,
                            conversation.created_at,
                            conversation.updated_at,
                        ),
                    )
                    row = await cur.fetchone()
        return str(row["id"])

    async def touch(self, conversation_id: str, last_message: str, at: datetime) -> None:
        async with translate_errors("conversation"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        "UPDATE conversations SET last_message = %s, updated_at = %s WHERE id = %s",
                        (last_message, at, _as_uuid(conversation_id)),
                    )


class PostgresMessageStore:
    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    async def insert(self, message: Message) -> str:
        async with translate_errors("message"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        INSERT INTO messages (id, conversation_id, sender_ref, receiver_ref, content, created_at)
                        VALUES (%s, %s, %s, %s, %s, %s)
                        RETURNING id
                        """,
                        (
                            _as_uuid(message.id),
                            _as_uuid(message.conversation_id),
                            message.sender_ref,
                            message.receiver_ref,
                            message.content,
                            message.created_at,
                        ),
                    )
                    row = await cur.fetchone()
        return str(row["id"])

    async def list_for_conversation(self, conversation_id: str) -> list[Message]:
        key = _as_uuid(conversation_id)
        if key is None:
            return []
        async with translate_errors("message"):
            async with self.pool.connection(timeout=DB_POOL_TIMEOUT) as conn:
                async with conn.cursor() as cur:
                    await cur.execute(
                        """
                        SELECT id, conversation_id, sender_ref, receiver_ref, content, created_at
                        FROM messages
                        WHERE conversation_id = %s
                        ORDER BY created_at ASC
                        """,
                        (key,),
                    )
                    rows = await cur.fetchall()
        return [Message(**_stringify_ids(r, "id", "conversation_id")) for r in rows]
