"""
Record store abstraction for SQL databases and an in-memory test implementation.

Every user-owned record carries the id of the user it belongs to, and every
read or write of such records takes that user id. By-id updates and deletes
match on ``(id, user_id)`` so one user cannot touch another user's records.
"""

from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    create_engine,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from workbench.errors import StoreError

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class DbClient(Protocol):
    """Interface for record store access."""

    def get_user(self, user_id: str) -> Optional["UserRecord"]:
        ...

    def find_user_by_subject(self, subject_id: str) -> Optional["UserRecord"]:
        ...

    def create_user(
        self, subject_id: str, display_name: str | None, email: str | None
    ) -> "UserRecord":
        ...

    def update_user_stats(
        self,
        user_id: str,
        *,
        max_typing_speed: float,
        average_typing_speed: int,
    ) -> None:
        ...

    def insert_typing_test(
        self,
        user_id: str,
        *,
        wpm: float,
        accuracy: float,
        mistakes: int,
        duration: float,
    ) -> "TypingTestRecord":
        ...

    def list_typing_tests(
        self, user_id: str, *, newest_first: bool = False
    ) -> list["TypingTestRecord"]:
        ...

    def create_todo(
        self, user_id: str, task: str, completed: bool = False
    ) -> "TodoRecord":
        ...

    def list_todos(self, user_id: str) -> list["TodoRecord"]:
        ...

    def update_todo(
        self, user_id: str, todo_id: str, *, completed: bool
    ) -> Optional["TodoRecord"]:
        ...

    def delete_todo(self, user_id: str, todo_id: str) -> bool:
        ...

    def add_calculation(
        self, user_id: str, expression: str, result: str
    ) -> "CalculationRecord":
        ...

    def last_calculation(self, user_id: str) -> Optional["CalculationRecord"]:
        ...

    def list_calculations(self, user_id: str) -> list["CalculationRecord"]:
        ...


@dataclass
class UserRecord:
    user_id: str
    subject_id: str
    display_name: Optional[str]
    email: Optional[str]
    max_typing_speed: float = 0
    average_typing_speed: int = 0
    created_at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.user_id,
            "subjectId": self.subject_id,
            "displayName": self.display_name,
            "email": self.email,
            "maxTypingSpeed": self.max_typing_speed,
            "averageTypingSpeed": self.average_typing_speed,
        }


@dataclass
class TypingTestRecord:
    test_id: str
    user_id: str
    wpm: float
    accuracy: float
    mistakes: int
    duration: float
    timestamp: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.test_id,
            "userId": self.user_id,
            "wpm": self.wpm,
            "accuracy": self.accuracy,
            "mistakes": self.mistakes,
            "duration": self.duration,
            "timestamp": self.timestamp,
        }


@dataclass
class TodoRecord:
    todo_id: str
    user_id: str
    task: str
    completed: bool = False
    created_at: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.todo_id,
            "userId": self.user_id,
            "task": self.task,
            "completed": self.completed,
            "createdAt": self.created_at,
        }


@dataclass
class CalculationRecord:
    calculation_id: str
    user_id: str
    expression: str
    result: str
    timestamp: datetime = field(default_factory=utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.calculation_id,
            "userId": self.user_id,
            "expression": self.expression,
            "result": self.result,
            "timestamp": self.timestamp,
        }


def _newest_first(records: list, key: str) -> list:
    # Later inserts win ties on equal timestamps.
    return sorted(reversed(records), key=lambda r: getattr(r, key), reverse=True)


class InMemoryDbClient:
    """
    Simple in-memory store for development and tests.

    Reads hand out copies, so callers never mutate stored records. A lock
    serializes writes because FastAPI runs sync handlers on a thread pool;
    like the SQL store's unique constraint, it refuses a second user for a
    subject id.
    """

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.typing_tests: list[TypingTestRecord] = []
        self.todos: Dict[str, TodoRecord] = {}
        self.calculations: list[CalculationRecord] = []
        self._lock = threading.RLock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.users.clear()
            self.typing_tests.clear()
            self.todos.clear()
            self.calculations.clear()

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._lock:
            user = self.users.get(user_id)
            return replace(user) if user else None

    def _user_for_subject(self, subject_id: str) -> Optional[UserRecord]:
        for user in self.users.values():
            if user.subject_id == subject_id:
                return user
        return None

    def find_user_by_subject(self, subject_id: str) -> Optional[UserRecord]:
        with self._lock:
            user = self._user_for_subject(subject_id)
            return replace(user) if user else None

    def create_user(
        self, subject_id: str, display_name: str | None, email: str | None
    ) -> UserRecord:
        with self._lock:
            if self._user_for_subject(subject_id):
                raise StoreError(f"create user failed: subject {subject_id} exists")
            record = UserRecord(
                user_id=_new_id(),
                subject_id=subject_id,
                display_name=display_name,
                email=email,
            )
            self.users[record.user_id] = record
            return replace(record)

    def update_user_stats(
        self,
        user_id: str,
        *,
        max_typing_speed: float,
        average_typing_speed: int,
    ) -> None:
        with self._lock:
            user = self.users.get(user_id)
            if not user:
                return
            user.max_typing_speed = max_typing_speed
            user.average_typing_speed = average_typing_speed

    def insert_typing_test(
        self,
        user_id: str,
        *,
        wpm: float,
        accuracy: float,
        mistakes: int,
        duration: float,
    ) -> TypingTestRecord:
        record = TypingTestRecord(
            test_id=_new_id(),
            user_id=user_id,
            wpm=wpm,
            accuracy=accuracy,
            mistakes=mistakes,
            duration=duration,
        )
        with self._lock:
            self.typing_tests.append(record)
        return replace(record)

    def list_typing_tests(
        self, user_id: str, *, newest_first: bool = False
    ) -> list[TypingTestRecord]:
        with self._lock:
            tests = [replace(t) for t in self.typing_tests if t.user_id == user_id]
        if newest_first:
            return _newest_first(tests, "timestamp")
        return tests

    def create_todo(
        self, user_id: str, task: str, completed: bool = False
    ) -> TodoRecord:
        record = TodoRecord(
            todo_id=_new_id(), user_id=user_id, task=task, completed=completed
        )
        with self._lock:
            self.todos[record.todo_id] = record
        return replace(record)

    def list_todos(self, user_id: str) -> list[TodoRecord]:
        with self._lock:
            todos = [replace(t) for t in self.todos.values() if t.user_id == user_id]
        return _newest_first(todos, "created_at")

    def update_todo(
        self, user_id: str, todo_id: str, *, completed: bool
    ) -> Optional[TodoRecord]:
        with self._lock:
            todo = self.todos.get(todo_id)
            if not todo or todo.user_id != user_id:
                return None
            todo.completed = completed
            return replace(todo)

    def delete_todo(self, user_id: str, todo_id: str) -> bool:
        with self._lock:
            todo = self.todos.get(todo_id)
            if not todo or todo.user_id != user_id:
                return False
            del self.todos[todo_id]
            return True

    def add_calculation(
        self, user_id: str, expression: str, result: str
    ) -> CalculationRecord:
        record = CalculationRecord(
            calculation_id=_new_id(),
            user_id=user_id,
            expression=expression,
            result=result,
        )
        with self._lock:
            self.calculations.append(record)
        return replace(record)

    def last_calculation(self, user_id: str) -> Optional[CalculationRecord]:
        history = self.list_calculations(user_id)
        return history[0] if history else None

    def list_calculations(self, user_id: str) -> list[CalculationRecord]:
        with self._lock:
            entries = [replace(c) for c in self.calculations if c.user_id == user_id]
        return _newest_first(entries, "timestamp")


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self.Session()
        try:
            yield session
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Store operation failed: %s", operation)
            raise StoreError(f"{operation} failed") from exc
        finally:
            session.close()

    def _to_user_record(self, row: "UserRow") -> UserRecord:
        return UserRecord(
            user_id=row.user_id,
            subject_id=row.subject_id,
            display_name=row.display_name,
            email=row.email,
            max_typing_speed=row.max_typing_speed or 0,
            average_typing_speed=row.average_typing_speed or 0,
            created_at=_aware(row.created_at),
        )

    def _to_typing_test_record(self, row: "TypingTestRow") -> TypingTestRecord:
        return TypingTestRecord(
            test_id=row.test_id,
            user_id=row.user_id,
            wpm=row.wpm,
            accuracy=row.accuracy,
            mistakes=row.mistakes,
            duration=row.duration,
            timestamp=_aware(row.timestamp),
        )

    def _to_todo_record(self, row: "TodoRow") -> TodoRecord:
        return TodoRecord(
            todo_id=row.todo_id,
            user_id=row.user_id,
            task=row.task,
            completed=row.completed,
            created_at=_aware(row.created_at),
        )

    def _to_calculation_record(self, row: "CalculationRow") -> CalculationRecord:
        return CalculationRecord(
            calculation_id=row.calculation_id,
            user_id=row.user_id,
            expression=row.expression,
            result=row.result,
            timestamp=_aware(row.timestamp),
        )

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._session("get user") as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            return self._to_user_record(row)

    def find_user_by_subject(self, subject_id: str) -> Optional[UserRecord]:
        with self._session("find user") as session:
            stmt = select(UserRow).where(UserRow.subject_id == subject_id)
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            return self._to_user_record(row)

    def create_user(
        self, subject_id: str, display_name: str | None, email: str | None
    ) -> UserRecord:
        with self._session("create user") as session:
            row = UserRow(
                user_id=_new_id(),
                subject_id=subject_id,
                display_name=display_name,
                email=email,
                max_typing_speed=0,
                average_typing_speed=0,
                created_at=utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_user_record(row)

    def update_user_stats(
        self,
        user_id: str,
        *,
        max_typing_speed: float,
        average_typing_speed: int,
    ) -> None:
        with self._session("update user stats") as session:
            row = session.get(UserRow, user_id)
            if not row:
                return
            row.max_typing_speed = max_typing_speed
            row.average_typing_speed = average_typing_speed
            session.commit()

    def insert_typing_test(
        self,
        user_id: str,
        *,
        wpm: float,
        accuracy: float,
        mistakes: int,
        duration: float,
    ) -> TypingTestRecord:
        with self._session("insert typing test") as session:
            row = TypingTestRow(
                test_id=_new_id(),
                user_id=user_id,
                wpm=wpm,
                accuracy=accuracy,
                mistakes=mistakes,
                duration=duration,
                timestamp=utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_typing_test_record(row)

    def list_typing_tests(
        self, user_id: str, *, newest_first: bool = False
    ) -> list[TypingTestRecord]:
        with self._session("list typing tests") as session:
            stmt = select(TypingTestRow).where(TypingTestRow.user_id == user_id)
            if newest_first:
                stmt = stmt.order_by(
                    TypingTestRow.timestamp.desc(), TypingTestRow.seq.desc()
                )
            else:
                stmt = stmt.order_by(TypingTestRow.seq.asc())
            rows = session.execute(stmt).scalars().all()
            return [self._to_typing_test_record(row) for row in rows]

    def create_todo(
        self, user_id: str, task: str, completed: bool = False
    ) -> TodoRecord:
        with self._session("create todo") as session:
            row = TodoRow(
                todo_id=_new_id(),
                user_id=user_id,
                task=task,
                completed=completed,
                created_at=utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_todo_record(row)

    def list_todos(self, user_id: str) -> list[TodoRecord]:
        with self._session("list todos") as session:
            stmt = (
                select(TodoRow)
                .where(TodoRow.user_id == user_id)
                .order_by(TodoRow.created_at.desc(), TodoRow.seq.desc())
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_todo_record(row) for row in rows]

    def update_todo(
        self, user_id: str, todo_id: str, *, completed: bool
    ) -> Optional[TodoRecord]:
        with self._session("update todo") as session:
            stmt = select(TodoRow).where(
                TodoRow.todo_id == todo_id, TodoRow.user_id == user_id
            )
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            row.completed = completed
            session.commit()
            session.refresh(row)
            return self._to_todo_record(row)

    def delete_todo(self, user_id: str, todo_id: str) -> bool:
        with self._session("delete todo") as session:
            stmt = select(TodoRow).where(
                TodoRow.todo_id == todo_id, TodoRow.user_id == user_id
            )
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def add_calculation(
        self, user_id: str, expression: str, result: str
    ) -> CalculationRecord:
        with self._session("add calculation") as session:
            row = CalculationRow(
                calculation_id=_new_id(),
                user_id=user_id,
                expression=expression,
                result=result,
                timestamp=utcnow(),
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_calculation_record(row)

    def last_calculation(self, user_id: str) -> Optional[CalculationRecord]:
        with self._session("get last calculation") as session:
            stmt = (
                select(CalculationRow)
                .where(CalculationRow.user_id == user_id)
                .order_by(CalculationRow.timestamp.desc(), CalculationRow.seq.desc())
                .limit(1)
            )
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                return None
            return self._to_calculation_record(row)

    def list_calculations(self, user_id: str) -> list[CalculationRecord]:
        with self._session("list calculations") as session:
            stmt = (
                select(CalculationRow)
                .where(CalculationRow.user_id == user_id)
                .order_by(CalculationRow.timestamp.desc(), CalculationRow.seq.desc())
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_calculation_record(row) for row in rows]


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    user_id = Column(String, primary_key=True)
    subject_id = Column(String, nullable=False, unique=True, index=True)
    display_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    max_typing_speed = Column(Float, nullable=False, default=0)
    average_typing_speed = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)


class TypingTestRow(Base):
    __tablename__ = "typing_tests"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    test_id = Column(String, nullable=False, unique=True)
    user_id = Column(String, nullable=False, index=True)
    wpm = Column(Float, nullable=False)
    accuracy = Column(Float, nullable=False)
    mistakes = Column(Integer, nullable=False)
    duration = Column(Float, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)


class TodoRow(Base):
    __tablename__ = "todos"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    todo_id = Column(String, nullable=False, unique=True)
    user_id = Column(String, nullable=False, index=True)
    task = Column(String, nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


class CalculationRow(Base):
    __tablename__ = "calculations"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    calculation_id = Column(String, nullable=False, unique=True)
    user_id = Column(String, nullable=False, index=True)
    expression = Column(String, nullable=False)
    result = Column(String, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
