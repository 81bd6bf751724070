from contextlib import contextmanager
import os

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from git2stats.config import LOGGER_GIT2STATS, get_logger

logger = get_logger(LOGGER_GIT2STATS)


def build_db_url(config: dict) -> str:
    """Build a SQLAlchemy URL from the ``output`` config section"""
    if config["type"] == "postgresql":
        pg = config["postgresql"]
        return f"postgresql+psycopg2://{pg['user']}:{pg['password']}@{pg['host']}:{pg['port']}/{pg['database']}"
    elif config["type"] == "sqlite":
        return f"sqlite:///{config['sqlite']['database']}"
    raise ValueError(f"Unsupported output setting: {config['type']}")


def _configure_sqlite(engine: Engine, in_memory: bool):
    # pysqlite issues its own BEGIN lazily and skips it before SAVEPOINT,
    # so transaction control is taken over here.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        if not in_memory:
            cursor = dbapi_connection.cursor()
            # single writer, concurrent readers
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Store:
    """Explicit handle on the relational store.

    Opened once at process start and closed once at the end; every component
    that writes receives it (or a session from it) as an argument.
    """

    def __init__(self, db_url: str, echo: bool = False):
        self.db_url = db_url
        if db_url.startswith("sqlite"):
            in_memory = db_url in ("sqlite://", "sqlite:///:memory:")
            if in_memory:
                self.engine = create_engine(
                    db_url,
                    echo=echo,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                )
            else:
                db_file = db_url[len("sqlite:///"):]
                db_dir = os.path.dirname(db_file)
                if db_dir:
                    os.makedirs(db_dir, exist_ok=True)
                self.engine = create_engine(
                    db_url,
                    echo=echo,
                    connect_args={"check_same_thread": False},
                )
            _configure_sqlite(self.engine, in_memory)
        else:
            self.engine = create_engine(db_url, echo=echo, pool_size=5, max_overflow=0)

        self.Session = sessionmaker(bind=self.engine)
        self._in_transaction = False

    @classmethod
    def from_config(cls, config: dict) -> "Store":
        return cls(build_db_url(config))

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def create_tables(self):
        from git2stats.database.model import create_tables

        create_tables(self.engine)

    def reset_tables(self):
        from git2stats.database.model import reset_tables

        reset_tables(self.engine)

    def get_session(self) -> Session:
        """Get a new session"""
        if self.Session is None:
            raise RuntimeError("Store is closed.")
        return self.Session()

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope around a series of operations."""
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def run_in_transaction(self, operation):
        """Run ``operation(session)`` atomically and return its result.

        Commits when the operation returns; rolls everything back and re-raises
        when it raises. Transactions cannot be nested.
        """
        if self._in_transaction:
            raise RuntimeError("A transaction is already open; nesting is not supported")

        self._in_transaction = True
        try:
            with self.session_scope() as session:
                return operation(session)
        except Exception as e:
            logger.error(f"Transaction rolled back: {e}")
            raise
        finally:
            self._in_transaction = False

    def close(self):
        """Close database connection"""
        if self.engine is None:
            return
        try:
            self.engine.dispose()
            logger.debug(f"Database connection closed: {self.engine.url!r}")
        finally:
            self.engine = None
            self.Session = None


def open_store(config: dict) -> Store:
    """Open the store described by the ``output`` config and ensure its tables exist"""
    store = Store.from_config(config)
    logger.info(f"Database connected: {store.engine.url!r}")
    store.create_tables()
    return store
