from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from didledger.logging import get_logger

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """Creates an engine; SQLite connections get foreign keys and cross-thread access enabled."""
    kwargs = {"echo": echo}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every session sees an empty database.
            kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **kwargs)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def alembic_config() -> Config:
    """Alembic configuration pointing at the bundled migration scripts."""
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    return config


def head_revision() -> Optional[str]:
    return ScriptDirectory.from_config(alembic_config()).get_current_head()


class Store:
    """Handle on the relational store, injected into every lifecycle service.

    Wraps an engine and a session factory. `session()` yields a session whose
    writes are committed when the block exits normally and rolled back when it
    raises, so each block is one local transaction.
    """

    def __init__(self, database_url: str, engine: Optional[Engine] = None, echo: bool = False):
        self.database_url = database_url
        self.engine = engine or build_engine(database_url, echo=echo)
        self.session_factory = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def migrate(self) -> Optional[str]:
        """Upgrades the schema to the latest alembic revision and returns it."""
        config = alembic_config()
        with self.engine.begin() as connection:
            config.attributes["connection"] = connection
            command.upgrade(config, "head")
        revision = self.current_revision()
        logger.info(f"Database schema at revision {revision} ({self.engine.url.render_as_string(hide_password=True)})")
        return revision

    def current_revision(self) -> Optional[str]:
        """The applied alembic revision, or None for an unmigrated database."""
        with self.engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()

    def dispose(self):
        self.engine.dispose()

    def __repr__(self):
        return f"<Store(database_url='{self.database_url}')>"
