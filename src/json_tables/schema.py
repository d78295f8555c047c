"""Built-in table metadata and per-table field defaults."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from json_tables.types import Record, clone_value, now_iso


@dataclass(frozen=True)
class TableMeta:
    """Primary key and id generation settings for a known table."""

    name: str
    primary_key: tuple[str, ...]
    auto_increment: bool = False

    @property
    def id_column(self) -> str:
        """The column that receives generated ids (first primary key column)."""
        return self.primary_key[0]

    @property
    def is_composite(self) -> bool:
        """Return whether the primary key spans more than one column."""
        return len(self.primary_key) > 1


@dataclass(frozen=True)
class FieldDefault:
    """A default for one field: either a static value or a zero-argument factory."""

    name: str
    value: Any = None
    factory: Callable[[], Any] | None = None

    def produce(self) -> Any:
        """Return a fresh default value."""
        if self.factory is not None:
            return self.factory()
        return clone_value(self.value)


def _static(**values: Any) -> list[FieldDefault]:
    return [FieldDefault(name=name, value=value) for name, value in values.items()]


TABLE_META: dict[str, TableMeta] = {
    meta.name: meta
    for meta in (
        TableMeta("group_settings", ("group_id",)),
        TableMeta("usuarios", ("id",)),
        TableMeta("chats", ("id",)),
        TableMeta("messages", ("user_id", "group_id")),
        TableMeta("characters", ("id",), auto_increment=True),
        TableMeta("subbots", ("id",)),
        TableMeta("reportes", ("id",), auto_increment=True),
        TableMeta("chat_memory", ("chat_id",)),
        TableMeta("stats", ("command",)),
    )
}

KNOWN_TABLES: frozenset[str] = frozenset(TABLE_META)


TABLE_DEFAULTS: dict[str, list[FieldDefault]] = {
    "group_settings": _static(
        welcome=True,
        detect=True,
        antifake=False,
        antilink=False,
        antilink2=False,
        modohorny=False,
        audios=False,
        antiStatus=False,
        modoadmin=False,
        photowelcome=False,
        photobye=False,
        autolevelup=True,
        banned=False,
        expired=0,
        memory_ttl=86400,
    ),
    "usuarios": _static(
        registered=False,
        banned=False,
        warn_pv=False,
        warn=0,
        warn_antiporn=0,
        warn_estado=0,
        money=100,
        limite=10,
        exp=0,
        banco=0,
        level=0,
        role="novato",
        ry_time=0,
        lastwork=0,
        lastmiming=0,
        lastclaim=0,
        dailystreak=0,
        lastcofre=0,
        lastrob=0,
        lastslut=0,
        timevot=0,
        wait=0,
        crime=0,
        avisos_ban=0,
        marry=None,
        marry_request=None,
    ),
    "chats": _static(
        is_group=True,
        is_active=True,
        joined=True,
    ),
    "messages": _static(
        message_count=0,
    ),
    "characters": _static(
        for_sale=False,
        votes=0,
    ),
    "subbots": _static(
        prefix=["/", ".", "#"],
        mode="public",
        owners=[],
        anti_private=False,
        anti_call=True,
        privacy=False,
        prestar=False,
    ),
    "reportes": _static(
        enviado=False,
        tipo="reporte",
    )
    + [FieldDefault(name="fecha", factory=now_iso)],
    "chat_memory": [FieldDefault(name="updated_at", factory=now_iso)],
}


def get_meta(table: str) -> TableMeta | None:
    """Get the metadata for a known table, or None for ad-hoc tables."""
    return TABLE_META.get(table)


def apply_defaults(table: str, row: Record) -> Record:
    """Fill fields missing from ``row`` with the table's declared defaults.

    Fields present in the row, including those explicitly set to null,
    are left untouched. Returns the same row for chaining.
    """
    for default in TABLE_DEFAULTS.get(table, []):
        if default.name not in row:
            row[default.name] = default.produce()
    return row
