"""
SQLAlchemy Storage Implementation

The relational store behind BudgetPal. Works with any database
SQLAlchemy supports; SQLite is the default for local use.

The store enforces:
- unique user email (signup races surface as DuplicateError)
- expense -> user foreign key
- ownership: update/delete statements filter on (id, owner_user_id)

`SqlStoreClient` owns the engine. It is created once by the process
entry point, shared by every storage class, and closed on shutdown.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional, TypeVar
from uuid import UUID

import structlog
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    Uuid,
    create_engine,
    delete,
    event,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.orm import Session as DbSession
from sqlalchemy.pool import StaticPool
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from budgetpal.config import DatabaseSettings, get_settings
from budgetpal.models.audit import AuditEvent, AuditEventType, AuditSeverity
from budgetpal.models.expense import Expense, ExpenseCategory, User, utc_now
from budgetpal.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    StorageError,
    UserStorageInterface,
)

T = TypeVar("T")

logger = structlog.get_logger(__name__)


# =============================================================================
# SCHEMA
# =============================================================================

class Base(DeclarativeBase):
    pass


class UserRow(Base):
    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class ExpenseRow(Base):
    __tablename__ = "expenses"
    __table_args__ = (
        Index("ix_expenses_owner_created", "owner_user_id", "created_at"),
    )

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    owner_user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE")
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    description: Mapped[str] = mapped_column(String(500))
    category_type: Mapped[ExpenseCategory] = mapped_column(
        SAEnum(ExpenseCategory, name="category_type", native_enum=False, length=20)
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class AuditEventRow(Base):
    __tablename__ = "audit_events"

    event_id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    event_type: Mapped[str] = mapped_column(String(50))
    severity: Mapped[str] = mapped_column(String(20))
    entity_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    entity_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    actor_user_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    correlation_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    description: Mapped[str] = mapped_column(String(500))
    details: Mapped[dict] = mapped_column(JSON, default=dict)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_user_action: Mapped[bool] = mapped_column(Boolean, default=False)


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# CLIENT
# =============================================================================

class SqlStoreClient:
    """
    Low-level database client.

    Owns the engine and session factory. The initial connect and
    read-only transactions are retried on transient faults
    (OperationalError) with exponential backoff; writes and integrity
    errors are never retried.
    """

    def __init__(self, settings: Optional[DatabaseSettings] = None):
        self._settings = settings or get_settings().database
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None

    def __enter__(self) -> "SqlStoreClient":
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self._settings.connect_attempts),
            wait=wait_exponential(
                multiplier=0.5,
                max=self._settings.retry_max_wait_seconds,
            ),
            retry=retry_if_exception_type(OperationalError),
            reraise=True,
        )

    def _create_engine(self) -> Engine:
        kwargs = {"echo": self._settings.echo}
        if self._settings.is_sqlite:
            kwargs["connect_args"] = {"check_same_thread": False}
            if self._settings.is_in_memory:
                # One shared connection, otherwise every checkout sees an empty database
                kwargs["poolclass"] = StaticPool
        else:
            kwargs["pool_pre_ping"] = True

        engine = create_engine(self._settings.url, **kwargs)

        if self._settings.is_sqlite:
            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_connection, _record):
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON")
                cursor.close()

        return engine

    def connect(self) -> Engine:
        """
        Create the engine and check the database answers.

        Raises:
            ConnectionError: If the database is unreachable after retries
        """
        if self._engine is None:
            engine = self._create_engine()
            try:
                for attempt in self._retrying():
                    with attempt:
                        with engine.connect() as conn:
                            conn.execute(text("SELECT 1"))
            except SQLAlchemyError as e:
                engine.dispose()
                raise ConnectionError(f"Failed to connect to database: {e}") from e

            self._engine = engine
            self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
            logger.info("store_connected", dialect=engine.dialect.name)
        return self._engine

    def create_schema(self) -> None:
        """Create missing tables. Safe to call on every start."""
        Base.metadata.create_all(self.connect())

    def run_in_transaction(
        self,
        fn: Callable[[DbSession], T],
        read_only: bool = False,
    ) -> T:
        """
        Run `fn` inside one transaction: commit on return, roll back on error.

        Only read-only work is retried on transient faults. A write whose
        commit reached the database before the connection dropped must
        not run a second time.
        """
        self.connect()
        if not read_only:
            return self._execute(fn)
        for attempt in self._retrying():
            with attempt:
                result = self._execute(fn)
        return result

    def _execute(self, fn: Callable[[DbSession], T]) -> T:
        with self._session_factory() as session:
            with session.begin():
                return fn(session)

    def close(self) -> None:
        """Dispose of the engine and its pool. Idempotent."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("store_closed")
        self._engine = None
        self._session_factory = None

    @property
    def is_connected(self) -> bool:
        return self._engine is not None


# =============================================================================
# USERS
# =============================================================================

def _row_to_user(row: UserRow) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        password_hash=row.password_hash,
        created_at=_as_utc(row.created_at),
    )


class SqlUserStorage(UserStorageInterface):
    """SQL implementation of user storage."""

    def __init__(self, client: SqlStoreClient):
        self._client = client

    async def create_user(self, user: User) -> User:
        def _insert(session: DbSession) -> User:
            session.add(UserRow(
                id=user.id,
                name=user.name,
                email=user.email,
                password_hash=user.password_hash,
                created_at=user.created_at,
            ))
            session.flush()
            return user

        try:
            return self._client.run_in_transaction(_insert)
        except IntegrityError as e:
            raise DuplicateError("A user with this email already exists") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create user: {e}") from e

    async def get_user_by_email(self, email: str) -> Optional[User]:
        def _select(session: DbSession) -> Optional[User]:
            row = session.scalars(
                select(UserRow).where(UserRow.email == email)
            ).one_or_none()
            return _row_to_user(row) if row else None

        try:
            return self._client.run_in_transaction(_select, read_only=True)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get user: {e}") from e

    async def get_user_by_id(self, user_id: UUID) -> Optional[User]:
        def _select(session: DbSession) -> Optional[User]:
            row = session.get(UserRow, user_id)
            return _row_to_user(row) if row else None

        try:
            return self._client.run_in_transaction(_select, read_only=True)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get user: {e}") from e


# =============================================================================
# EXPENSES
# =============================================================================

def _row_to_expense(row: ExpenseRow) -> Expense:
    return Expense(
        id=row.id,
        owner_user_id=row.owner_user_id,
        amount=row.amount,
        description=row.description,
        category_type=row.category_type,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


class SqlExpenseStorage(ExpenseStorageInterface):
    """
    SQL implementation of expense storage.

    Each mutation is a single statement carrying the owner predicate.
    """

    def __init__(self, client: SqlStoreClient):
        self._client = client

    async def save_expense(self, expense: Expense) -> Expense:
        def _insert(session: DbSession) -> Expense:
            if session.get(UserRow, expense.owner_user_id) is None:
                raise NotFoundError(f"Owner not found: {expense.owner_user_id}")
            session.add(ExpenseRow(
                id=expense.id,
                owner_user_id=expense.owner_user_id,
                amount=expense.amount,
                description=expense.description,
                category_type=expense.category_type,
                created_at=expense.created_at,
                updated_at=expense.updated_at,
            ))
            session.flush()
            return expense

        try:
            return self._client.run_in_transaction(_insert)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to save expense: {e}") from e

    async def get_owned_expense(
        self,
        expense_id: UUID,
        owner_user_id: UUID,
    ) -> Optional[Expense]:
        def _select(session: DbSession) -> Optional[Expense]:
            row = session.scalars(
                select(ExpenseRow).where(
                    ExpenseRow.id == expense_id,
                    ExpenseRow.owner_user_id == owner_user_id,
                )
            ).one_or_none()
            return _row_to_expense(row) if row else None

        try:
            return self._client.run_in_transaction(_select, read_only=True)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get expense: {e}") from e

    async def update_owned_expense(
        self,
        expense_id: UUID,
        owner_user_id: UUID,
        amount: Decimal,
        description: str,
        category_type: ExpenseCategory,
    ) -> Optional[Expense]:
        def _update(session: DbSession) -> Optional[Expense]:
            result = session.execute(
                update(ExpenseRow)
                .where(
                    ExpenseRow.id == expense_id,
                    ExpenseRow.owner_user_id == owner_user_id,
                )
                .values(
                    amount=amount,
                    description=description,
                    category_type=category_type,
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            row = session.get(ExpenseRow, expense_id)
            return _row_to_expense(row)

        try:
            return self._client.run_in_transaction(_update)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to update expense: {e}") from e

    async def delete_owned_expense(
        self,
        expense_id: UUID,
        owner_user_id: UUID,
    ) -> bool:
        def _delete(session: DbSession) -> bool:
            result = session.execute(
                delete(ExpenseRow)
                .where(
                    ExpenseRow.id == expense_id,
                    ExpenseRow.owner_user_id == owner_user_id,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

        try:
            return self._client.run_in_transaction(_delete)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete expense: {e}") from e

    async def list_expenses_for_owner(
        self,
        owner_user_id: UUID,
        category: Optional[ExpenseCategory] = None,
    ) -> list[Expense]:
        def _select(session: DbSession) -> list[Expense]:
            stmt = select(ExpenseRow).where(ExpenseRow.owner_user_id == owner_user_id)
            if category is not None:
                stmt = stmt.where(ExpenseRow.category_type == category)
            stmt = stmt.order_by(ExpenseRow.created_at.desc())
            return [_row_to_expense(row) for row in session.scalars(stmt)]

        try:
            return self._client.run_in_transaction(_select, read_only=True)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list expenses: {e}") from e


# =============================================================================
# AUDIT
# =============================================================================

def _row_to_event(row: AuditEventRow) -> AuditEvent:
    return AuditEvent(
        event_id=row.event_id,
        timestamp=_as_utc(row.timestamp),
        event_type=AuditEventType(row.event_type),
        severity=AuditSeverity(row.severity),
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        actor_user_id=row.actor_user_id,
        correlation_id=row.correlation_id,
        description=row.description,
        details=row.details or {},
        error_message=row.error_message,
        is_user_action=row.is_user_action,
    )


class SqlAuditStorage(AuditStorageInterface):
    """
    SQL implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: SqlStoreClient):
        self._client = client

    async def append_event(self, event: AuditEvent) -> bool:
        def _insert(session: DbSession) -> bool:
            session.add(AuditEventRow(
                event_id=event.event_id,
                timestamp=event.timestamp,
                event_type=event.event_type.value,
                severity=event.severity.value,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                actor_user_id=event.actor_user_id,
                correlation_id=event.correlation_id,
                description=event.description,
                details=event.details,
                error_message=event.error_message,
                is_user_action=event.is_user_action,
            ))
            return True

        try:
            return self._client.run_in_transaction(_insert)
        except SQLAlchemyError as e:
            # Audit logging must not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        def _select(session: DbSession) -> list[AuditEvent]:
            stmt = (
                select(AuditEventRow)
                .where(AuditEventRow.correlation_id == correlation_id)
                .order_by(AuditEventRow.timestamp)
            )
            return [_row_to_event(row) for row in session.scalars(stmt)]

        try:
            return self._client.run_in_transaction(_select, read_only=True)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        def _select(session: DbSession) -> list[AuditEvent]:
            stmt = (
                select(AuditEventRow)
                .where(
                    AuditEventRow.entity_type == entity_type,
                    AuditEventRow.entity_id == entity_id,
                )
                .order_by(AuditEventRow.timestamp)
            )
            return [_row_to_event(row) for row in session.scalars(stmt)]

        try:
            return self._client.run_in_transaction(_select, read_only=True)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        def _select(session: DbSession) -> list[AuditEvent]:
            stmt = (
                select(AuditEventRow)
                .order_by(AuditEventRow.timestamp.desc())
                .limit(limit)
            )
            return [_row_to_event(row) for row in session.scalars(stmt)]

        try:
            return self._client.run_in_transaction(_select, read_only=True)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get audit events: {e}") from e
