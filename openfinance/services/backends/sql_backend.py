"""SQLAlchemy backend for the primary transaction store."""

import uuid
from datetime import UTC
from typing import Any

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, String, Text, create_engine, delete, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from openfinance.core.settings import Settings
from openfinance.services.backends.base import PrimaryBackend

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class TransactionRow(Base):
    """A transaction as stored in the SQL database."""

    __tablename__ = "transactions"
    id = Column(String(36), primary_key=True, default=_new_id)
    description = Column(Text, nullable=False)
    amount = Column(Float, nullable=False)
    is_credit_card = Column(Boolean, nullable=False, default=False)
    month_year = Column(String(7), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    category = Column(String(100), nullable=True, index=True)
    tags = Column(JSON, nullable=True)
    location = Column(JSON, nullable=True)
    mirror_ref = Column(String, nullable=True)


FILTERABLE_COLUMNS = {"month_year", "category", "is_credit_card"}


def get_engine(url: str) -> Engine:
    """Create a SQLAlchemy engine; SQLite connections are shared across the threadpool."""
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


class SQLBackend(PrimaryBackend):
    """Primary backend over any SQLAlchemy-supported database."""

    name = "sql"

    def __init__(self, engine: Engine) -> None:
        """Initialize the backend with an engine and its session factory."""
        self.engine = engine
        self.Session = sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SQLBackend":
        """Build the backend from the configured database URL."""
        return cls(get_engine(settings.database_url))

    def prepare(self) -> None:
        """Create the transactions table if it does not exist."""
        Base.metadata.create_all(self.engine)

    def ping(self) -> None:
        """Run ``SELECT 1`` against the database."""
        with self.Session() as session:
            session.execute(text("SELECT 1"))

    def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        """Insert a transaction row and return it with its generated id."""
        with self.Session() as session:
            row = TransactionRow(**values)
            session.add(row)
            session.commit()
            return self._to_dict(row)

    def select(self, conditions: dict[str, Any], limit: int | None = None, offset: int = 0) -> list[dict[str, Any]]:
        """Return rows matching every equality condition, newest first."""
        stmt = select(TransactionRow)
        for column, value in conditions.items():
            if column not in FILTERABLE_COLUMNS:
                raise ValueError(f"Cannot filter on column '{column}'")
            stmt = stmt.where(getattr(TransactionRow, column) == value)
        stmt = stmt.order_by(TransactionRow.created_at.desc(), TransactionRow.id.desc())
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.Session() as session:
            return [self._to_dict(row) for row in session.scalars(stmt)]

    def get(self, row_id: str) -> dict[str, Any] | None:
        """Return the row with the given id, or None."""
        with self.Session() as session:
            row = session.get(TransactionRow, row_id)
            return self._to_dict(row) if row is not None else None

    def update(self, row_id: str, values: dict[str, Any]) -> dict[str, Any] | None:
        """Apply the given column values and return the re-read row."""
        with self.Session() as session:
            row = session.get(TransactionRow, row_id)
            if row is None:
                return None
            for column, value in values.items():
                setattr(row, column, value)
            session.commit()
            confirmed = session.get(TransactionRow, row_id, populate_existing=True)
            return self._to_dict(confirmed) if confirmed is not None else None

    def delete(self, row_id: str) -> None:
        """Delete the row if present."""
        with self.Session() as session:
            session.execute(delete(TransactionRow).where(TransactionRow.id == row_id))
            session.commit()

    @staticmethod
    def _to_dict(row: TransactionRow) -> dict[str, Any]:
        data = {column.name: getattr(row, column.name) for column in TransactionRow.__table__.columns}
        # SQLite hands timestamps back without their zone
        if data["created_at"] is not None and data["created_at"].tzinfo is None:
            data["created_at"] = data["created_at"].replace(tzinfo=UTC)
        return data
