"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Route, service and
dependency code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

Atomicity:
  Every mutation is a single UPDATE ... WHERE username = :u statement, so
  SQLite's per-statement atomicity is all the locking the callers need.
  update_password() additionally matches on the hash it read, which turns a
  concurrent reset into a no-op instead of a lost update.

Failures:
  SQLAlchemyError (other than IntegrityError from create_user) is re-raised
  as StoreUnavailable. IntegrityError propagates so callers can map a UNIQUE
  violation to DuplicateUser.

revocation_watermark table: single-row table (id=1 enforced by CHECK
constraint). INSERT OR IGNORE ensures the row always exists after creation.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import StoreUnavailable
from auth.models import Role, User

logger = logging.getLogger("gatehouse.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255), nullable=False),
    Column("hashed_password", Text, nullable=False),
    Column("token_secret", String(255), nullable=False),
    Column("role", String(30), nullable=False, server_default=Role.guest.value),
    Column("invalidated", Integer, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

_watermark = Table(
    "revocation_watermark",
    _metadata,
    Column("id", Integer, primary_key=True),
    Column("older_than", BigInteger, nullable=False, server_default="0"),
    CheckConstraint("id = 1", name="single_row"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@contextmanager
def _store_errors(operation: str) -> Iterator[None]:
    """Translate driver failures into StoreUnavailable. No retries."""
    try:
        yield
    except IntegrityError:
        raise
    except SQLAlchemyError as exc:
        logger.error("Store operation %s failed: %s", operation, exc)
        raise StoreUnavailable(detail=operation) from exc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and the revocation watermark.

    Usage:
        store = UserStore()
        store.create_user(User(username="alice", email="a@x.com", hashed_password=..., token_secret=...))
        user = store.get_by_username("alice")
        store.close()
    """

    # Fields update_user() accepts. token_secret and invalidated change only
    # together, through rotate_token_secret().
    _UPDATABLE_FIELDS: frozenset = frozenset({"email", "role", "hashed_password"})

    def __init__(self, db_url: str = "sqlite:///gatehouse.db") -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)
        self._ensure_watermark_row()

    def _ensure_watermark_row(self) -> None:
        """Seed the single watermark row at 0 (the epoch) if not present.

        INSERT OR IGNORE is idempotent -- safe to call on every startup.
        """
        with self.engine.connect() as conn:
            conn.execute(text("INSERT OR IGNORE INTO revocation_watermark (id, older_than) VALUES (1, 0)"))
            conn.commit()

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        """
        with _store_errors("create_user"), self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    email=user.email,
                    hashed_password=user.hashed_password,
                    token_secret=user.token_secret,
                    role=Role(user.role).value,
                    invalidated=1 if user.invalidated else 0,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with _store_errors("get_by_username"), self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def update_user(self, username: str, **fields) -> bool:
        """Update mutable fields on an existing user.

        Accepted fields: email, role, hashed_password. Unknown fields raise
        ValueError rather than being silently ignored.

        Returns True if a row was updated, False if username was not found.
        """
        unknown = set(fields) - self._UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown user fields: {unknown!r}")
        if "role" in fields:
            fields["role"] = Role(fields["role"]).value
        with _store_errors("update_user"), self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.username == username).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def update_password(self, username: str, old_hash: str, new_hash: str) -> bool:
        """Replace the password hash only if it still equals old_hash.

        Returns False when the user is gone or another reset got there first.
        """
        with _store_errors("update_password"), self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.username == username) & (_users.c.hashed_password == old_hash))
                .values(hashed_password=new_hash)
            )
            conn.commit()
        return result.rowcount > 0

    def rotate_token_secret(self, username: str, new_secret: str) -> bool:
        """Swap in a new token_secret and mark the user invalidated, atomically.

        Returns True if a row was updated, False if username was not found.
        """
        with _store_errors("rotate_token_secret"), self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.username == username).values(token_secret=new_secret, invalidated=1)
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Revocation watermark
    # ------------------------------------------------------------------

    def get_watermark(self) -> int:
        """Return the persisted watermark in epoch milliseconds."""
        with _store_errors("get_watermark"), self.engine.connect() as conn:
            value = conn.execute(select(_watermark.c.older_than).where(_watermark.c.id == 1)).scalar()
        return int(value or 0)

    def set_watermark(self, older_than: int) -> None:
        with _store_errors("set_watermark"), self.engine.connect() as conn:
            conn.execute(_watermark.update().where(_watermark.c.id == 1).values(older_than=older_than))
            conn.commit()

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        hashed_password=row.hashed_password,
        token_secret=row.token_secret,
        role=Role(row.role),
        invalidated=bool(row.invalidated),
        created_at=row.created_at,
    )
