"""Shared fixtures.

`FakeCassandraSession` stands in for a cassandra-asyncio-driver session. It
understands the handful of CQL shapes the services prepare (single-table
SELECT / INSERT / UPDATE / DELETE with equality WHERE clauses and the IF
conditions used for enrollments) and keeps rows in memory, so service tests
can assert on stored state instead of on call arguments.
"""

import os
import re
import tempfile
from collections.abc import Iterator
from copy import deepcopy
from datetime import timedelta
from types import SimpleNamespace
from typing import Any
from unittest.mock import patch
from uuid import UUID, uuid4

import pytest
from cassandra import DriverException


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="govlearn-logs-"))
os.environ.setdefault("LOG_REQUESTS", "false")

from fastapi.testclient import TestClient  # noqa: E402

from govlearn.auth.permissions import UserRole  # noqa: E402
from govlearn.auth.security import create_access_token  # noqa: E402
from govlearn.config import get_settings  # noqa: E402
from govlearn.main import AppServices, build_services, create_app  # noqa: E402


KEYSPACE = "test_keyspace"

PRIMARY_KEYS = {
    "courses": ("id",),
    "lessons": ("id",),
    "quiz_questions": ("id",),
    "enrollments": ("user_id", "course_id"),
    "enrollments_by_course": ("course_id", "user_id"),
    "lesson_progress": ("user_id", "course_id", "lesson_id"),
}


# ==============================================================================
# Fake Cassandra
# ==============================================================================


class FakeResult(list):
    """ResultSet stand-in: iterable rows plus `one()` and `was_applied`."""

    def __init__(self, rows: list[Any] | None = None, was_applied: bool = True):
        super().__init__(rows or [])
        self.was_applied = was_applied

    def one(self) -> Any:
        return self[0] if self else None


class FakePrepared:
    def __init__(self, cql: str):
        self.query_string = " ".join(cql.split())

    def __repr__(self) -> str:
        return f"<FakePrepared {self.query_string}>"


class FakeBatch:
    """Records statements; replaces cassandra.query.BatchStatement in tests."""

    def __init__(self, batch_type: Any = None, **_: Any):
        self.batch_type = batch_type
        self.entries: list[tuple[FakePrepared, list[Any]]] = []

    def add(self, statement: FakePrepared, parameters: list[Any] | None = None) -> None:
        self.entries.append((statement, list(parameters or [])))

    def __len__(self) -> int:
        return len(self.entries)


_SELECT = re.compile(
    r"^SELECT (?P<cols>.+?) FROM (?P<table>[\w.]+)(?: WHERE (?P<where>.+))?$", re.I
)
_INSERT = re.compile(
    r"^INSERT INTO (?P<table>[\w.]+) \((?P<cols>[^)]*)\) VALUES \((?P<vals>[^)]*)\)"
    r"(?P<ine> IF NOT EXISTS)?$",
    re.I,
)
_UPDATE = re.compile(
    r"^UPDATE (?P<table>[\w.]+) SET (?P<set>.+?) WHERE (?P<where>.+?)"
    r"(?: IF (?P<cond>.+))?$",
    re.I,
)
_DELETE = re.compile(r"^DELETE FROM (?P<table>[\w.]+) WHERE (?P<where>.+)$", re.I)


def _columns(clause: str) -> list[str]:
    return [part.split("=")[0].strip() for part in re.split(r" AND |,", clause, flags=re.I)]


class FakeCassandraSession:
    """In-memory session with `prepare` and `aexecute`."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[tuple, dict[str, Any]]] = {
            name: {} for name in PRIMARY_KEYS
        }
        self.batches: list[FakeBatch] = []
        self.fail_batches = False

    # -- driver surface --------------------------------------------------------

    def prepare(self, cql: str) -> FakePrepared:
        return FakePrepared(cql)

    async def aexecute(self, statement: Any, parameters: list[Any] | None = None) -> FakeResult:
        if isinstance(statement, FakeBatch):
            return self._execute_batch(statement)
        if isinstance(statement, str):
            statement = FakePrepared(statement)
        return self._execute(statement, list(parameters or []))

    # -- helpers for assertions ------------------------------------------------

    def rows(self, table: str) -> list[dict[str, Any]]:
        return [dict(row) for row in self.tables[table].values()]

    def row(self, table: str, **key: Any) -> dict[str, Any] | None:
        pk = tuple(key[name] for name in PRIMARY_KEYS[table])
        found = self.tables[table].get(pk)
        return dict(found) if found else None

    # -- implementation --------------------------------------------------------

    def _execute_batch(self, batch: FakeBatch) -> FakeResult:
        self.batches.append(batch)
        if self.fail_batches:
            msg = "batch rejected"
            raise DriverException(msg)
        snapshot = deepcopy(self.tables)
        try:
            for statement, params in batch.entries:
                self._execute(statement, params)
        except Exception:
            self.tables = snapshot
            raise
        return FakeResult()

    def _execute(self, statement: FakePrepared, params: list[Any]) -> FakeResult:
        cql = statement.query_string
        for pattern, handler in (
            (_SELECT, self._select),
            (_INSERT, self._insert),
            (_UPDATE, self._update),
            (_DELETE, self._delete),
        ):
            match = pattern.match(cql)
            if match:
                return handler(match, params)
        msg = f"Unsupported CQL in fake session: {cql}"
        raise AssertionError(msg)

    @staticmethod
    def _table(qualified: str) -> str:
        return qualified.split(".")[-1]

    def _matching(self, table: str, criteria: dict[str, Any]) -> list[tuple[tuple, dict[str, Any]]]:
        return [
            (pk, row)
            for pk, row in self.tables[table].items()
            if all(row.get(col) == value for col, value in criteria.items())
        ]

    def _select(self, match: re.Match, params: list[Any]) -> FakeResult:
        if match["table"] == "system.local":
            return FakeResult([SimpleNamespace(release_version="4.1.0")])
        table = self._table(match["table"])
        criteria = (
            dict(zip(_columns(match["where"]), params, strict=True))
            if match["where"]
            else {}
        )
        found = [row for _, row in self._matching(table, criteria)]
        if match["cols"].upper().startswith("COUNT(*)"):
            return FakeResult([SimpleNamespace(count=len(found))])
        columns = self._all_columns(table)
        return FakeResult(
            [SimpleNamespace(**{c: deepcopy(row.get(c)) for c in columns}) for row in found]
        )

    def _all_columns(self, table: str) -> set[str]:
        columns = set(PRIMARY_KEYS[table])
        for row in self.tables[table].values():
            columns.update(row)
        return columns | _KNOWN_COLUMNS.get(table, set())

    def _insert(self, match: re.Match, params: list[Any]) -> FakeResult:
        table = self._table(match["table"])
        columns = [c.strip() for c in match["cols"].split(",")]
        values: list[Any] = []
        remaining = iter(params)
        for token in (v.strip() for v in match["vals"].split(",")):
            values.append(next(remaining) if token == "?" else None)
        row = dict(zip(columns, values, strict=True))
        pk = tuple(row[name] for name in PRIMARY_KEYS[table])

        if match["ine"] and pk in self.tables[table]:
            existing = SimpleNamespace(**self.tables[table][pk])
            return FakeResult([existing], was_applied=False)

        self.tables[table].setdefault(pk, {}).update(deepcopy(row))
        return FakeResult()

    def _update(self, match: re.Match, params: list[Any]) -> FakeResult:
        table = self._table(match["table"])
        set_columns = _columns(match["set"])
        where_columns = _columns(match["where"])
        assignments = dict(zip(set_columns, params[: len(set_columns)], strict=True))
        key = dict(zip(where_columns, params[len(set_columns) :], strict=True))
        pk = tuple(key[name] for name in PRIMARY_KEYS[table])
        current = self.tables[table].get(pk, {})

        if match["cond"] and not self._conditions_hold(match["cond"], current):
            return FakeResult(was_applied=False)

        row = self.tables[table].setdefault(pk, dict(key))
        row.update(deepcopy(assignments))
        return FakeResult()

    @staticmethod
    def _conditions_hold(condition: str, row: dict[str, Any]) -> bool:
        for clause in re.split(r" AND ", condition, flags=re.I):
            column, op, literal = clause.split()
            if literal.lower() != "null":
                msg = f"Unsupported condition: {clause}"
                raise AssertionError(msg)
            value = row.get(column)
            if op == "=" and value is not None:
                return False
            if op == "!=" and value is None:
                return False
        return True

    def _delete(self, match: re.Match, params: list[Any]) -> FakeResult:
        table = self._table(match["table"])
        criteria = dict(zip(_columns(match["where"]), params, strict=True))
        for pk, _ in self._matching(table, criteria):
            del self.tables[table][pk]
        return FakeResult()


_KNOWN_COLUMNS = {
    "courses": {
        "id", "title", "description", "thumbnail_url", "level", "total_duration",
        "is_published", "order_index", "created_by", "created_at", "updated_at",
    },
    "lessons": {
        "id", "course_id", "title", "description", "type", "duration_min",
        "video_url", "video_source", "file_url", "file_name", "page_count",
        "content", "is_external_link", "order_index", "is_published",
        "passing_score", "created_at", "updated_at",
    },
    "quiz_questions": {
        "id", "lesson_id", "question", "options", "correct_answer_index",
        "explanation", "order_index", "created_at",
    },
    "enrollments": {"user_id", "course_id", "enrolled_at", "completed_at"},
    "enrollments_by_course": {"course_id", "user_id", "enrolled_at"},
    "lesson_progress": {
        "user_id", "course_id", "lesson_id", "status", "progress_percent",
        "quiz_score", "quiz_attempts", "started_at", "completed_at",
        "last_accessed_at",
    },
}


# ==============================================================================
# Service Fixtures
# ==============================================================================


@pytest.fixture
def cassandra() -> Iterator[FakeCassandraSession]:
    """In-memory Cassandra session; batches are recorded by FakeBatch."""
    with patch("govlearn.catalog.service.BatchStatement", FakeBatch):
        yield FakeCassandraSession()


@pytest.fixture
def services(cassandra: FakeCassandraSession) -> AppServices:
    settings = get_settings().model_copy(update={"cassandra_keyspace": KEYSPACE})
    return build_services(cassandra, settings)


@pytest.fixture
def course_service(services: AppServices):
    return services.course_service


@pytest.fixture
def lesson_service(services: AppServices):
    return services.lesson_service


@pytest.fixture
def progress_service(services: AppServices):
    return services.progress_service


@pytest.fixture
def user_id() -> UUID:
    """Test learner ID."""
    return uuid4()


@pytest.fixture
def admin_id() -> UUID:
    """Test admin ID."""
    return uuid4()


# ==============================================================================
# HTTP Fixtures
# ==============================================================================


def make_token(user_id: UUID, role: UserRole) -> str:
    return create_access_token(
        {"sub": str(user_id), "role": role.value, "ministry": "Finance"},
        expires_delta=timedelta(minutes=5),
    )


@pytest.fixture
def app(services: AppServices):
    application = create_app()
    services.install(application)
    return application


@pytest.fixture
def client(app) -> TestClient:
    """Test client without lifespan; services are installed directly."""
    return TestClient(app)


@pytest.fixture
def token_for():
    """Factory: bearer headers for any user id and role."""

    def _headers(user_id: UUID, role: UserRole = UserRole.LEARNER) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, role)}"}

    return _headers


@pytest.fixture
def admin_headers(admin_id: UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(admin_id, UserRole.ADMIN)}"}


@pytest.fixture
def learner_headers(user_id: UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, UserRole.LEARNER)}"}
