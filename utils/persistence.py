# utils/persistence.py
from __future__ import annotations

import json
import os
import threading
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Protocol

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from utils.schema import ContentType

LOOKUPS = ("category", "employer")


class PersistenceError(RuntimeError):
    """A create/find against the store failed."""


class PersistenceGateway(Protocol):
    def find(self, content_type: ContentType, source_url: str) -> Optional[int]: ...

    def create(self, content_type: ContentType, record: Mapping[str, Any]) -> int: ...

    def find_or_create(self, lookup: str, name: str) -> int: ...


# -----------------------------
# Table plan
# -----------------------------
def _entity_table(meta: sa.MetaData, name: str, *cols: sa.Column) -> sa.Table:
    return sa.Table(
        name,
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("source_url", sa.String, nullable=False, unique=True),
        *cols,
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )


def build_metadata() -> sa.MetaData:
    meta = sa.MetaData()
    sa.Table(
        "categories",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String, nullable=False, unique=True),
    )
    sa.Table(
        "employers",
        meta,
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String, nullable=False, unique=True),
    )
    _entity_table(
        meta,
        "jobs",
        sa.Column("source_id", sa.String),
        sa.Column("title", sa.String, nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("company", sa.String, nullable=False),
        sa.Column("location", sa.String, nullable=False),
        sa.Column("job_type", sa.String, nullable=False),
        sa.Column("employment_type", sa.String, nullable=False),
        sa.Column("salary_min", sa.Float),
        sa.Column("salary_max", sa.Float),
        sa.Column("salary_currency", sa.String),
        sa.Column("salary_period", sa.String),
        sa.Column("salary_mode", sa.String),
        sa.Column("salary_raw", sa.String),
        sa.Column("country", sa.String),
        sa.Column("state", sa.String),
        sa.Column("city", sa.String),
        sa.Column("skills", sa.Text),
        sa.Column("application_method", sa.String),
        sa.Column("application_url", sa.String),
        sa.Column("seniority", sa.String),
        sa.Column("industries", sa.String),
        sa.Column("applicants", sa.String),
        sa.Column("posted_at", sa.DateTime),
        sa.Column("is_active", sa.Boolean, default=True),
        sa.Column("category_id", sa.Integer, sa.ForeignKey("categories.id")),
        sa.Column("employer_id", sa.Integer, sa.ForeignKey("employers.id")),
    )
    _entity_table(
        meta,
        "events",
        sa.Column("title", sa.String, nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("start_date", sa.DateTime),
        sa.Column("location", sa.String),
        sa.Column("is_virtual", sa.Boolean),
        sa.Column("event_type", sa.String),
        sa.Column("organizer", sa.String),
        sa.Column("is_active", sa.Boolean, default=True),
    )
    _entity_table(
        meta,
        "people",
        sa.Column("first_name", sa.String, nullable=False),
        sa.Column("last_name", sa.String),
        sa.Column("headline", sa.String),
        sa.Column("current_location", sa.String),
        sa.Column("bio", sa.Text),
    )
    _entity_table(
        meta,
        "articles",
        sa.Column("title", sa.String, nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("excerpt", sa.String),
        sa.Column("author", sa.String),
        sa.Column("tags", sa.Text),
        sa.Column("published_at", sa.DateTime),
        sa.Column("is_published", sa.Boolean, default=True),
    )
    _entity_table(
        meta,
        "companies",
        sa.Column("name", sa.String, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("industry", sa.String),
        sa.Column("company_size", sa.String),
        sa.Column("headquarters", sa.String),
        sa.Column("website", sa.String),
    )
    _entity_table(
        meta,
        "posts",
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("author", sa.String, nullable=False),
        sa.Column("posted_at", sa.DateTime),
        sa.Column("reactions", sa.Integer),
    )
    return meta


def _make_engine(db_url: str) -> sa.Engine:
    if db_url.startswith("sqlite"):
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every checkout sees an empty db
            return sa.create_engine(
                db_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        path = db_url.replace("sqlite:///", "", 1)
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        return sa.create_engine(db_url, connect_args={"check_same_thread": False})
    return sa.create_engine(db_url)


def _prep(table: sa.Table, record: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep known columns; lists become JSON text."""
    out: Dict[str, Any] = {}
    for k, v in record.items():
        if k not in table.c or k in ("id", "created_at"):
            continue
        if isinstance(v, (list, tuple)):
            v = json.dumps(list(v), ensure_ascii=False)
        elif isinstance(v, str) and isinstance(table.c[k].type, sa.DateTime):
            v = datetime.fromisoformat(v)
        out[k] = v
    return out


class SqlGateway:
    """
    Persistence gateway over SQLAlchemy Core.

    Tables are created on first use. Every call runs in its own
    transaction; a lock serializes access so find-or-create stays atomic
    inside one process and a shared in-memory connection is never used
    by two threads at once.
    """

    def __init__(self, db_url: str, engine: Optional[sa.Engine] = None) -> None:
        self.db_url = db_url
        self.engine = engine or _make_engine(db_url)
        self.meta = build_metadata()
        self._lock = threading.Lock()
        try:
            self.meta.create_all(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"schema setup failed: {e}") from e

    def table(self, content_type: ContentType) -> sa.Table:
        return self.meta.tables[ContentType(content_type).value]

    def find(self, content_type: ContentType, source_url: str) -> Optional[int]:
        t = self.table(content_type)
        try:
            with self._lock, self.engine.begin() as conn:
                row = conn.execute(
                    sa.select(t.c.id).where(t.c.source_url == source_url)
                ).first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"find {t.name} failed: {e}") from e
        return row[0] if row else None

    def create(self, content_type: ContentType, record: Mapping[str, Any]) -> int:
        t = self.table(content_type)
        values = _prep(t, record)
        try:
            with self._lock, self.engine.begin() as conn:
                res = conn.execute(t.insert().values(**values))
                return int(res.inserted_primary_key[0])
        except SQLAlchemyError as e:
            raise PersistenceError(f"create {t.name} failed: {e}") from e

    def find_or_create(self, lookup: str, name: str) -> int:
        if lookup not in LOOKUPS:
            raise ValueError(f"unknown lookup {lookup!r} (use one of {LOOKUPS})")
        name = (name or "").strip()
        if not name:
            raise ValueError("lookup name must be non-empty")
        t = self.meta.tables["categories" if lookup == "category" else "employers"]
        stmt = sa.select(t.c.id).where(t.c.name == name)
        try:
            with self._lock, self.engine.begin() as conn:
                row = conn.execute(stmt).first()
                if row:
                    return int(row[0])
                res = conn.execute(t.insert().values(name=name))
                return int(res.inserted_primary_key[0])
        except SQLAlchemyError as e:
            raise PersistenceError(f"find_or_create {lookup} failed: {e}") from e

    def count(self, content_type: ContentType) -> int:
        t = self.table(content_type)
        with self._lock, self.engine.begin() as conn:
            return int(conn.execute(sa.select(sa.func.count()).select_from(t)).scalar_one())

    def rows(self, content_type: ContentType, limit: int = 100) -> list[dict]:
        t = self.table(content_type)
        stmt = sa.select(t).order_by(sa.desc(t.c.id)).limit(limit)
        with self._lock, self.engine.begin() as conn:
            return [dict(r) for r in conn.execute(stmt).mappings().all()]

    def close(self) -> None:
        self.engine.dispose()
