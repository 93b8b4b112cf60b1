import logging
import sqlite3

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from workshop_api.core import config

logger = logging.getLogger(__name__)


def _connect_args(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    config.DATABASE_URL,
    echo=config.DATABASE_ECHO,
    connect_args=_connect_args(config.DATABASE_URL),
)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores REFERENCES clauses unless this is set per connection.
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Each migration is (version, description, column additions, extra statements).
# Column additions are (table, column, statement) and only run when the column
# is missing, so databases created by an older create_all catch up in place.
# Append new versions; never edit or drop an applied one.
MIGRATIONS = [
    (
        1,
        "lookup indexes",
        [],
        [
            "CREATE INDEX IF NOT EXISTS idx_workshops_mentor_date ON workshops(mentor_id, date_time)",
            "CREATE INDEX IF NOT EXISTS idx_activities_workshop_date ON activities(workshop_id, date_time)",
            "CREATE INDEX IF NOT EXISTS idx_enrollments_learner_workshop ON enrollments(learner_id, workshop_id)",
        ],
    ),
    (
        2,
        "user notification preferences",
        [
            (
                "users",
                "notification_preferences",
                "ALTER TABLE users ADD COLUMN notification_preferences BOOLEAN NOT NULL DEFAULT TRUE",
            ),
        ],
        [],
    ),
    (
        3,
        "calendar credential scope and expiry",
        [
            ("calendar_credentials", "scope", "ALTER TABLE calendar_credentials ADD COLUMN scope VARCHAR"),
            ("calendar_credentials", "expires_at", "ALTER TABLE calendar_credentials ADD COLUMN expires_at TIMESTAMP"),
        ],
        [],
    ),
]


def _applied_versions(connection: Connection) -> set[int]:
    connection.execute(
        text(
            "CREATE TABLE IF NOT EXISTS schema_migrations ("
            "version INTEGER PRIMARY KEY, "
            "description VARCHAR NOT NULL, "
            "applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP)"
        )
    )
    rows = connection.execute(text("SELECT version FROM schema_migrations")).all()
    return {row[0] for row in rows}


def apply_migrations(bind: Engine | None = None) -> list[int]:
    """Apply pending additive migrations and return the versions that ran."""
    bind = bind or engine
    applied: list[int] = []

    with bind.begin() as connection:
        done = _applied_versions(connection)
        for version, description, column_steps, statements in MIGRATIONS:
            if version in done:
                continue

            inspector = inspect(connection)
            tables = set(inspector.get_table_names())
            for table_name, column_name, statement in column_steps:
                if table_name not in tables:
                    continue
                existing_columns = {column["name"] for column in inspector.get_columns(table_name)}
                if column_name not in existing_columns:
                    connection.execute(text(statement))

            for statement in statements:
                connection.execute(text(statement))

            connection.execute(
                text("INSERT INTO schema_migrations (version, description) VALUES (:version, :description)"),
                {"version": version, "description": description},
            )
            logger.info("Applied schema migration %s (%s)", version, description)
            applied.append(version)

    return applied


def init_schema(bind: Engine | None = None) -> None:
    """Create missing tables and apply migrations. Never drops anything."""
    # Registers every model on Base.metadata.
    from workshop_api.models import activity, calendar_credential, enrollment, user, workshop  # noqa: F401

    bind = bind or engine
    Base.metadata.create_all(bind=bind)
    apply_migrations(bind)
