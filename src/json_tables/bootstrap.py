"""Schema bootstrap and subbot configuration lookup."""

from __future__ import annotations

import copy
import re
from typing import Any

import structlog

from json_tables.database import Database
from json_tables.errors import JsonTablesError

logger = structlog.get_logger()


GROUP_SETTINGS_COLUMNS: list[tuple[str, str]] = [
    ("welcome", "BOOLEAN DEFAULT true"),
    ("detect", "BOOLEAN DEFAULT true"),
    ("antifake", "BOOLEAN DEFAULT false"),
    ("antilink", "BOOLEAN DEFAULT false"),
    ("antilink2", "BOOLEAN DEFAULT false"),
    ("modohorny", "BOOLEAN DEFAULT false"),
    ("audios", "BOOLEAN DEFAULT false"),
    ("nsfw_horario", "TEXT"),
    ("antiStatus", "BOOLEAN DEFAULT false"),
    ("modoadmin", "BOOLEAN DEFAULT false"),
    ("photowelcome", "BOOLEAN DEFAULT false"),
    ("photobye", "BOOLEAN DEFAULT false"),
    ("autolevelup", "BOOLEAN DEFAULT true"),
    ("sWelcome", "TEXT"),
    ("sBye", "TEXT"),
    ("sPromote", "TEXT"),
    ("sDemote", "TEXT"),
    ("banned", "BOOLEAN DEFAULT false"),
    ("expired", "BIGINT DEFAULT 0"),
    ("memory_ttl", "INTEGER DEFAULT 86400"),
    ("sAutorespond", "TEXT"),
    ("primary_bot", "TEXT"),
]

USUARIOS_COLUMNS: list[tuple[str, str]] = [
    ("nombre", "TEXT"),
    ("registered", "BOOLEAN DEFAULT false"),
    ("num", "TEXT"),
    ("lid", "TEXT UNIQUE"),
    ("banned", "BOOLEAN DEFAULT false"),
    ("warn_pv", "BOOLEAN DEFAULT false"),
    ("warn", "INTEGER DEFAULT 0"),
    ("warn_antiporn", "INTEGER DEFAULT 0"),
    ("warn_estado", "INTEGER DEFAULT 0"),
    ("edad", "INTEGER"),
    ("money", "INTEGER DEFAULT 100"),
    ("limite", "INTEGER DEFAULT 10"),
    ("exp", "INTEGER DEFAULT 0"),
    ("banco", "INTEGER DEFAULT 0"),
    ("level", "INTEGER DEFAULT 0"),
    ("role", "TEXT DEFAULT 'novato'"),
    ("reg_time", "TIMESTAMP"),
    ("serial_number", "TEXT"),
    ("sticker_packname", "TEXT"),
    ("sticker_author", "TEXT"),
    ("ry_time", "BIGINT DEFAULT 0"),
    ("lastwork", "BIGINT DEFAULT 0"),
    ("lastmiming", "BIGINT DEFAULT 0"),
    ("lastclaim", "BIGINT DEFAULT 0"),
    ("dailystreak", "BIGINT DEFAULT 0"),
    ("lastcofre", "BIGINT DEFAULT 0"),
    ("lastrob", "BIGINT DEFAULT 0"),
    ("lastslut", "BIGINT DEFAULT 0"),
    ("timevot", "BIGINT DEFAULT 0"),
    ("wait", "BIGINT DEFAULT 0"),
    ("crime", "BIGINT DEFAULT 0"),
    ("marry", "TEXT DEFAULT NULL"),
    ("marry_request", "TEXT DEFAULT NULL"),
    ("razon_ban", "TEXT"),
    ("avisos_ban", "INTEGER DEFAULT 0"),
    ("gender", "TEXT"),
    ("birthday", "DATE"),
]

CHARACTERS_COLUMNS: list[tuple[str, str]] = [
    ("name", "TEXT NOT NULL"),
    ("url", "TEXT NOT NULL"),
    ("tipo", "TEXT"),
    ("anime", "TEXT"),
    ("rareza", "TEXT"),
    ("price", "INTEGER NOT NULL"),
    ("previous_price", "INTEGER"),
    ("claimed_by", "TEXT"),
    ("for_sale", "BOOLEAN DEFAULT false"),
    ("seller", "TEXT"),
    ("votes", "INTEGER DEFAULT 0"),
    ("last_removed_time", "BIGINT"),
]

SUBBOTS_COLUMNS: list[tuple[str, str]] = [
    ("tipo", "TEXT DEFAULT 'null'"),
    ("name", "TEXT"),
    ("logo_url", "TEXT"),
    ("prefix", "TEXT[] DEFAULT ARRAY['/', '.', '#']"),
    ("mode", "TEXT DEFAULT 'public'"),
    ("owners", "TEXT[]"),
    ("anti_private", "BOOLEAN DEFAULT false"),
    ("anti_call", "BOOLEAN DEFAULT true"),
    ("privacy", "BOOLEAN DEFAULT false"),
    ("prestar", "BOOLEAN DEFAULT false"),
]

CREATE_STATEMENTS: dict[str, str] = {
    "group_settings": "CREATE TABLE IF NOT EXISTS group_settings (group_id TEXT PRIMARY KEY)",
    "usuarios": "CREATE TABLE IF NOT EXISTS usuarios (id TEXT PRIMARY KEY)",
    "chats": """
        CREATE TABLE IF NOT EXISTS chats (
            id TEXT PRIMARY KEY,
            is_group BOOLEAN DEFAULT true,
            timestamp BIGINT,
            is_active BOOLEAN DEFAULT true,
            bot_id TEXT,
            joined BOOLEAN DEFAULT true
        )
    """,
    "messages": """
        CREATE TABLE IF NOT EXISTS messages (
            user_id TEXT,
            group_id TEXT,
            message_count INTEGER DEFAULT 0,
            PRIMARY KEY (user_id, group_id)
        )
    """,
    "characters": "CREATE TABLE IF NOT EXISTS characters (id SERIAL PRIMARY KEY)",
    "subbots": "CREATE TABLE IF NOT EXISTS subbots (id TEXT PRIMARY KEY)",
    "reportes": """
        CREATE TABLE IF NOT EXISTS reportes (
            id SERIAL PRIMARY KEY,
            sender_id TEXT NOT NULL,
            sender_name TEXT,
            mensaje TEXT NOT NULL,
            fecha TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            enviado BOOLEAN DEFAULT false,
            tipo TEXT DEFAULT 'reporte'
        )
    """,
    "chat_memory": """
        CREATE TABLE IF NOT EXISTS chat_memory (
            chat_id TEXT PRIMARY KEY,
            history JSONB,
            updated_at TIMESTAMP DEFAULT NOW()
        )
    """,
    "stats": """
        CREATE TABLE IF NOT EXISTS stats (
            command TEXT PRIMARY KEY,
            count INTEGER DEFAULT 1
        )
    """,
}

ADDED_COLUMNS: dict[str, list[tuple[str, str]]] = {
    "group_settings": GROUP_SETTINGS_COLUMNS,
    "usuarios": USUARIOS_COLUMNS,
    "characters": CHARACTERS_COLUMNS,
    "subbots": SUBBOTS_COLUMNS,
}

SUBBOT_FALLBACK_CONFIG: dict[str, Any] = {
    "prefix": ["/", ".", "#"],
    "mode": "public",
    "anti_private": True,
    "anti_call": False,
    "owners": [],
    "name": None,
    "logo_url": None,
    "privacy": None,
    "prestar": None,
    "tipo": None,
}

_DEVICE_SUFFIX = re.compile(r":\d+")


def bootstrap_statements() -> list[str]:
    """The DDL that brings a store up to the bot's schema, in execution order."""
    statements = []
    for table, create in CREATE_STATEMENTS.items():
        statements.append(create)
        for column, definition in ADDED_COLUMNS.get(table, []):
            statements.append(f"ALTER TABLE {table} ADD COLUMN IF NOT EXISTS {column} {definition}")
    return statements


async def init_tables(db: Database) -> None:
    """Create every known table and seed added columns on existing rows."""
    try:
        for sql in bootstrap_statements():
            await db.execute(sql)
    except JsonTablesError as e:
        logger.error("init_tables_failed", error=str(e))
        return
    logger.info("tables_initialized", tables=len(CREATE_STATEMENTS))


async def get_subbot_config(db: Database, bot_id: str) -> dict[str, Any]:
    """Return the stored configuration of a subbot, or the fallback defaults.

    A ``:<digits>`` device suffix is stripped from ``bot_id`` before lookup.
    """
    clean_id = _DEVICE_SUFFIX.sub("", bot_id, count=1)
    try:
        result = await db.execute("SELECT * FROM subbots WHERE id = $1", [clean_id])
    except JsonTablesError as e:
        logger.error("subbot_config_failed", bot_id=bot_id, error=str(e))
        return copy.deepcopy(SUBBOT_FALLBACK_CONFIG)

    if result.rows:
        return result.rows[0]
    return copy.deepcopy(SUBBOT_FALLBACK_CONFIG)
