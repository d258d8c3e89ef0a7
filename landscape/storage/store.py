# landscape/storage/store.py
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError

from landscape.errors import PersistenceError
from landscape.models import utcnow

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "migrations"
DIALECTS = ("sqlite", "postgresql")

_TX_FLAG = "landscape.in_transaction"


@dataclass
class ExecuteResult:
    inserted_id: Optional[int]
    rows_affected: int


def migration_dialect(filename: str) -> Optional[str]:
    """`001_init.sqlite.sql` -> "sqlite"; a file without a tag applies to every dialect."""
    parts = filename.split(".")
    if len(parts) >= 3 and parts[-2] in DIALECTS:
        return parts[-2]
    return None


def pending_migrations(dialect: str, directory: Path = MIGRATIONS_DIR) -> List[Path]:
    files = []
    for path in sorted(directory.glob("*.sql"), key=lambda p: p.name):
        tag = migration_dialect(path.name)
        if tag is None or tag == dialect:
            files.append(path)
    return files


def split_statements(sql: str) -> List[str]:
    lines = [line for line in sql.splitlines() if not line.strip().startswith("--")]
    return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


def _enable_sqlite_fks(dbapi_conn, _record):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()


class Store:
    """
    Handle de persistencia compartido por todo el proceso.

    Se construye una sola vez en ``create_app`` y se pasa explícitamente al
    dispatcher, al motor de research y al executor. Por debajo usa la sesión
    de Flask-SQLAlchemy, así que cada llamada necesita un app context.
    """

    def __init__(self, db, migrations_dir: Path = MIGRATIONS_DIR):
        self._db = db
        self._migrations_dir = migrations_dir
        self._engine = None
        self._initialized = False
        self._init_lock = threading.Lock()

    @property
    def session(self):
        return self._db.session

    @property
    def dialect(self) -> str:
        return self._db.engine.dialect.name

    # ---------------------------
    # Lifecycle
    # ---------------------------

    def init(self) -> None:
        """Apply pending migrations once. Later calls are no-ops."""
        with self._init_lock:
            if self._initialized:
                return
            engine = self._db.engine
            if engine.dialect.name == "sqlite":
                event.listen(engine, "connect", _enable_sqlite_fks)
                # la conexión estática de :memory: ya existe
                self.session.execute(text("PRAGMA foreign_keys=ON"))
            try:
                self._run_migrations()
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error("Migration failed: %s", e)
                raise PersistenceError(f"Migration failed: {e}") from e
            self._engine = engine
            self._initialized = True
            logger.info("Database initialized successfully (%s)", engine.dialect.name)

    def _run_migrations(self) -> None:
        self.session.execute(text(
            "CREATE TABLE IF NOT EXISTS schema_migrations ("
            " filename VARCHAR(255) PRIMARY KEY,"
            " applied_at TIMESTAMP NOT NULL)"
        ))
        self.session.commit()

        applied = {row["filename"] for row in self.query_many("SELECT filename FROM schema_migrations")}
        for path in pending_migrations(self.dialect, self._migrations_dir):
            if path.name in applied:
                continue
            logger.info("Running migration: %s", path.name)
            for statement in split_statements(path.read_text(encoding="utf-8")):
                self.session.execute(text(statement))
            self.session.execute(
                text("INSERT INTO schema_migrations (filename, applied_at) VALUES (:f, :at)"),
                {"f": path.name, "at": utcnow()},
            )
            self.session.commit()
        logger.info("All migrations completed successfully")

    def close(self) -> None:
        """Return pooled connections and dispose the engine."""
        if self._engine is None:
            return
        try:
            self._engine.dispose()
            logger.info("Database connections closed")
        finally:
            self._engine = None
            self._initialized = False

    # ---------------------------
    # Queries
    # ---------------------------

    def _in_transaction(self) -> bool:
        return bool(self.session.info.get(_TX_FLAG))

    def execute(self, sql: str, params: Optional[Dict[str, Any]] = None) -> ExecuteResult:
        """
        Run one write statement.

        ``inserted_id`` is SQLite's ``lastrowid``; on PostgreSQL psycopg2 has no
        lastrowid, so write ``INSERT ... RETURNING id`` and the first column of
        the returned row is used instead.
        """
        try:
            result = self.session.execute(text(sql), params or {})
            rows_affected = result.rowcount
            inserted_id = None
            if result.returns_rows:
                # leer antes del commit, que devuelve la conexión al pool
                row = result.first()
                inserted_id = row[0] if row is not None else None
            elif self.dialect == "sqlite":
                inserted_id = result.lastrowid
            if not self._in_transaction():
                self.session.commit()
        except SQLAlchemyError as e:
            if not self._in_transaction():
                self.session.rollback()
            raise PersistenceError(f"Query failed: {e}") from e
        return ExecuteResult(inserted_id=inserted_id, rows_affected=rows_affected)

    def query_one(self, sql: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        try:
            row = self.session.execute(text(sql), params or {}).mappings().first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Query failed: {e}") from e
        return dict(row) if row is not None else None

    def query_many(self, sql: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        try:
            rows = self.session.execute(text(sql), params or {}).mappings().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Query failed: {e}") from e
        return [dict(r) for r in rows]

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """begin -> yield session -> commit; rollback on any error."""
        session = self.session
        if self._in_transaction():
            raise PersistenceError("Nested transactions are not supported")
        session.info[_TX_FLAG] = True
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"Transaction failed: {e}") from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.info.pop(_TX_FLAG, None)

    def add(self, obj) -> None:
        """Add and commit one ORM object (or stage it inside a transaction)."""
        try:
            self.session.add(obj)
            if not self._in_transaction():
                self.session.commit()
        except SQLAlchemyError as e:
            if not self._in_transaction():
                self.session.rollback()
            raise PersistenceError(f"Write failed: {e}") from e

    def update_where(self, model, values: Dict[str, Any], **criteria) -> int:
        """Single ``UPDATE ... WHERE`` on ``criteria``; returns the matched row count."""
        try:
            count = self.session.query(model).filter_by(**criteria).update(values, synchronize_session=False)
            if not self._in_transaction():
                self.session.commit()
        except SQLAlchemyError as e:
            if not self._in_transaction():
                self.session.rollback()
            raise PersistenceError(f"Write failed: {e}") from e
        return count

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise PersistenceError(f"Write failed: {e}") from e

    def get(self, model, pk):
        try:
            return self.session.get(model, pk)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Query failed: {e}") from e
