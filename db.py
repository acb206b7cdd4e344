# db.py
from fastapi import Request
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from config import CUSTOMERS_DB, DB_HOST, DB_PASSWORD, DB_PORT, DB_USER, DEFAULT_DB, TRADESMEN_DB
from models.user import Partition
from stores.base import Stores
from stores.postgres import (
    PostgresConversationStore,
    PostgresMessageStore,
    PostgresTradeProfileStore,
    PostgresUserStore,
)

# --- Database names ---
# "tradesmen" and "customers" hold the two user partitions, "default" holds messaging.
DATABASES = {
    "tradesmen": TRADESMEN_DB,
    "customers": CUSTOMERS_DB,
    "default": DEFAULT_DB,
}


def database_url(dbname: str) -> str:
    """Connection string for one of the three databases."""
    return f"dbname={dbname} user={DB_USER} password={DB_PASSWORD} host={DB_HOST} port={DB_PORT}"


async def open_pools() -> dict[str, AsyncConnectionPool]:
    """
    Open one connection pool per database.

    Called once from the application lifespan; the pools live on app.state
    and are handed to the stores per request (no module level cache).
    """
    pools: dict[str, AsyncConnectionPool] = {}
    try:
        for name, dbname in DATABASES.items():
            print(f"Initializing connection pool for '{name}' ({dbname})...")
            pool = AsyncConnectionPool(
                conninfo=database_url(dbname),
                kwargs={"row_factory": dict_row},  # rows come back as dicts, e.g. record['id']
                open=False,
            )
            await pool.open()
            pools[name] = pool
            print(f"Connection pool for '{name}' opened.")
    except Exception as e:
        print(f"ERROR: could not open connection pools: {e}")
        await close_pools(pools)
        raise
    return pools


async def close_pools(pools: dict[str, AsyncConnectionPool]):
    for name, pool in pools.items():
        await pool.close()
        print(f"Connection pool for '{name}' closed.")


def build_stores(pools: dict[str, AsyncConnectionPool]) -> Stores:
    return Stores(
        tradesmen=PostgresUserStore(pools["tradesmen"], Partition.TRADESMEN),
        customers=PostgresUserStore(pools["customers"], Partition.CUSTOMERS),
        profiles=PostgresTradeProfileStore(pools["tradesmen"]),
        conversations=PostgresConversationStore(pools["default"]),
        messages=PostgresMessageStore(pools["default"]),
    )


async def get_stores(request: Request) -> Stores:
    """
    FastAPI dependency: store handles bound to the application's pools.
    Tests replace it through app.dependency_overrides.
    """
    return build_stores(request.app.state.pools)
