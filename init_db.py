# init_db.py
import sys
import uuid

import psycopg
from psycopg import sql

from config import DB_HOST, DB_PASSWORD, DB_PORT, DB_USER
from db import DATABASES, database_url

# --- Schema of a user partition (tradesmen and customers databases) ---
# The two partitions share the same users table; uniqueness is per database.
USERS_SQL = """
-- 1. Role enum
DO $$ BEGIN
    IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'user_role') THEN
        CREATE TYPE user_role AS ENUM ('customer', 'tradesman', 'admin');
    END IF;
END $$;

-- 2. users
CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY,
    name VARCHAR(100) NOT NULL,
    email VARCHAR(255) NOT NULL UNIQUE,
    phone_number VARCHAR(15) NOT NULL UNIQUE CHECK (phone_number ~ '^[0-9]{10,15}$'),
    password_hash VARCHAR(255) NOT NULL,
    role user_role NOT NULL,
    city VARCHAR(100),
    migrated_from_id UUID,          -- customer id this account was migrated from
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_users_migrated_from ON users(migrated_from_id);
"""

# --- Trade profiles (tradesmen database only) ---
TRADE_PROFILES_SQL = """
CREATE TABLE IF NOT EXISTS trade_profiles (
    id UUID PRIMARY KEY,
    owner_user_id UUID NOT NULL UNIQUE,      -- at most one profile per tradesman
    owner_user_id_string TEXT NOT NULL,      -- same id as text, for legacy lookups
    name VARCHAR(100) NOT NULL,
    email VARCHAR(255) NOT NULL,
    phone_number VARCHAR(15),
    skills TEXT[] NOT NULL CHECK (cardinality(skills) > 0),
    experience INT NOT NULL CHECK (experience >= 0),
    hourly_rate NUMERIC(10, 2) NOT NULL CHECK (hourly_rate >= 0),
    city VARCHAR(100) NOT NULL,
    bio VARCHAR(500) NOT NULL,
    availability VARCHAR(255) NOT NULL,
    rating NUMERIC(2, 1) NOT NULL DEFAULT 0 CHECK (rating BETWEEN 0 AND 5),
    review_count INT NOT NULL DEFAULT 0 CHECK (review_count >= 0),
    profile_image VARCHAR(500),
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_trade_profiles_owner_string ON trade_profiles(owner_user_id_string);
CREATE INDEX IF NOT EXISTS idx_trade_profiles_city ON trade_profiles(city);
CREATE INDEX IF NOT EXISTS idx_trade_profiles_skills ON trade_profiles USING GIN (skills);
"""

# --- Messaging (default database) ---
MESSAGING_SQL = """
CREATE TABLE IF NOT EXISTS conversations (
    id UUID PRIMARY KEY,
    participants TEXT[] NOT NULL CHECK (cardinality(participants) = 2),
    pair_key TEXT NOT NULL UNIQUE,          -- sorted participant pair, one conversation per pair
    last_message TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_conversations_participants ON conversations USING GIN (participants);
CREATE INDEX IF NOT EXISTS idx_conversations_updated ON conversations(updated_at DESC);

CREATE TABLE IF NOT EXISTS messages (
    id UUID PRIMARY KEY,
    conversation_id UUID NOT NULL REFERENCES conversations(id) ON DELETE CASCADE,
    sender_ref TEXT NOT NULL,
    receiver_ref TEXT NOT NULL,
    content TEXT NOT NULL CHECK (length(btrim(content)) > 0),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id, created_at);
"""

SCHEMAS = {
    "tradesmen": [USERS_SQL, TRADE_PROFILES_SQL],
    "customers": [USERS_SQL],
    "default": [MESSAGING_SQL],
}


def _has_column(cur, table: str, column: str) -> bool:
    cur.execute(
        "SELECT column_name FROM information_schema.columns WHERE table_name = %s AND column_name = %s",
        (table, column),
    )
    return cur.fetchone() is not None


def ensure_databases():
    """Create any of the three databases that does not exist yet."""
    maintenance_url = f"dbname=postgres user={DB_USER} password={DB_PASSWORD} host={DB_HOST} port={DB_PORT}"
    # CREATE DATABASE cannot run inside a transaction
    with psycopg.connect(maintenance_url, autocommit=True) as conn:
        with conn.cursor() as cur:
            for dbname in DATABASES.values():
                cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (dbname,))
                if not cur.fetchone():
                    print(f"--> creating database {dbname}...")
                    cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(dbname)))


def init_database():
    """
    Create or update the schema of all three databases:
    1. base tables (CREATE ... IF NOT EXISTS, safe to run at every startup)
    2. additive fixes for databases created by older versions
    """
    try:
        print("Checking and updating database schema...")
        ensure_databases()
        for name, dbname in DATABASES.items():
            with psycopg.connect(database_url(dbname)) as conn:
                with conn.cursor() as cur:
                    for statement in SCHEMAS[name]:
                        cur.execute(statement)

                    # --- Auto-migration ---
                    if name in ("tradesmen", "customers") and not _has_column(cur, "users", "migrated_from_id"):
                        print(f"--> users table in {dbname} has no migrated_from_id, adding it...")
                        cur.execute("ALTER TABLE users ADD COLUMN migrated_from_id UUID")
                        cur.execute("CREATE INDEX IF NOT EXISTS idx_users_migrated_from ON users(migrated_from_id)")

                    if name == "tradesmen" and not _has_column(cur, "trade_profiles", "owner_user_id_string"):
                        print("--> trade_profiles has no owner_user_id_string, adding and backfilling it...")
                        cur.execute("ALTER TABLE trade_profiles ADD COLUMN owner_user_id_string TEXT")
                        cur.execute("UPDATE trade_profiles SET owner_user_id_string = owner_user_id::text")
                        cur.execute("ALTER TABLE trade_profiles ALTER COLUMN owner_user_id_string SET NOT NULL")
                conn.commit()
        print("Database schema is up to date!")
    except Exception as e:
        # The server still starts; requests will report the database as unavailable
        print(f"ERROR: database initialization failed: {e}")


# --- Sample data (python init_db.py --seed) ---
SAMPLE_PASSWORD = "password123"

SAMPLE_TRADESMEN = [
    {
        "name": "John Tradesman",
        "email": "john@example.com",
        "phone": "9876543210",
        "city": "Mumbai",
        "skills": ["Plumbing", "Electrical", "Carpentry"],
        "experience": 8,
        "hourly_rate": 500,
        "bio": "Experienced plumber and electrician with 8 years of work in residential and commercial projects.",
        "availability": "Weekdays 9am-6pm",
        "rating": 4.7,
        "review_count": 24,
    },
    {
        "name": "Raj Builder",
        "email": "raj@example.com",
        "phone": "8765432109",
        "city": "Delhi",
        "skills": ["Masonry", "Painting", "Tiling"],
        "experience": 12,
        "hourly_rate": 600,
        "bio": "Professional builder with expertise in masonry, painting and tiling.",
        "availability": "Everyday 8am-8pm",
        "rating": 4.9,
        "review_count": 36,
    },
]

SAMPLE_CUSTOMERS = [
    {"name": "Test Customer", "email": "customer@example.com", "phone": "9876543211", "city": "Mumbai"},
]


def seed_sample_data():
    """Insert a few tradesmen (with profiles) and a customer; existing emails are skipped."""
    from security import hash_password

    password_hash = hash_password(SAMPLE_PASSWORD)

    with psycopg.connect(database_url(DATABASES["tradesmen"])) as conn:
        with conn.cursor() as cur:
            for t in SAMPLE_TRADESMEN:
                user_id = uuid.uuid4()
                cur.execute(
                    """
                    INSERT INTO users (id, name, email, phone_number, password_hash, role, city)
                    VALUES (%s, %s, %s, %s, %s, 'tradesman', %s)
                    ON CONFLICT DO NOTHING
                    RETURNING id
                    """,
                    (user_id, t["name"], t["email"], t["phone"], password_hash, t["city"]),
                )
                if not cur.fetchone():
                    print(f"--> {t['email']} already exists, skipped")
                    continue
                cur.execute(
                    """
                    INSERT INTO trade_profiles
                    (id, owner_user_id, owner_user_id_string, name, email, phone_number, skills,
                     experience, hourly_rate, city, bio, availability, rating, review_count)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        uuid.uuid4(), user_id, str(user_id), t["name"], t["email"], t["phone"], t["skills"],
                        t["experience"], t["hourly_rate"], t["city"], t["bio"], t["availability"],
                        t["rating"], t["review_count"],
                    ),
                )
        conn.commit()

    with psycopg.connect(database_url(DATABASES["customers"])) as conn:
        with conn.cursor() as cur:
            for c in SAMPLE_CUSTOMERS:
                cur.execute(
                    """
                    INSERT INTO users (id, name, email, phone_number, password_hash, role, city)
                    VALUES (%s, %s, %s, %s, %s, 'customer', %s)
                    ON CONFLICT DO NOTHING
                    """,
                    (uuid.uuid4(), c["name"], c["email"], c["phone"], password_hash, c["city"]),
                )
        conn.commit()
    print(f"Sample data ready (password for every sample account: {SAMPLE_PASSWORD})")


if __name__ == "__main__":
    init_database()
    if "--seed" in sys.argv[1:]:
        seed_sample_data()
