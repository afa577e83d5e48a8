from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(config.DATABASE_URL, **_engine_options(config.DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_user_schema_checked = False


def ensure_user_schema(bind=None) -> None:
    """Bring a ``users`` table created by an older schema up to the current model.

    Adds the missing columns, then backfills rows so each one has a name, a
    known role and timestamps.
    """
    global _user_schema_checked

    if _user_schema_checked:
        return

    bind = bind or engine

    with _schema_lock:
        if _user_schema_checked:
            return

        inspector = inspect(bind)

        if 'users' not in inspector.get_table_names():
            _user_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('users')}
        migration_steps = [
            ('name', 'ALTER TABLE users ADD COLUMN name VARCHAR(100)'),
            ('reset_token', 'ALTER TABLE users ADD COLUMN reset_token VARCHAR(64)'),
            ('reset_token_expiry', 'ALTER TABLE users ADD COLUMN reset_token_expiry TIMESTAMP'),
            ('created_at', 'ALTER TABLE users ADD COLUMN created_at TIMESTAMP'),
            ('updated_at', 'ALTER TABLE users ADD COLUMN updated_at TIMESTAMP'),
        ]
        # Rows written before these columns existed must load as valid users.
        backfill_steps = [
            "UPDATE users SET name = SUBSTR(email, 1, 100) WHERE name IS NULL OR name = ''",
            "UPDATE users SET role = 'ADMIN' WHERE LOWER(role) = 'admin' AND role <> 'ADMIN'",
            "UPDATE users SET role = 'AGENT' WHERE role IS NULL OR role NOT IN ('AGENT', 'ADMIN')",
            'UPDATE users SET created_at = CURRENT_TIMESTAMP WHERE created_at IS NULL',
            'UPDATE users SET updated_at = created_at WHERE updated_at IS NULL',
            'UPDATE users SET reset_token = NULL WHERE reset_token_expiry IS NULL',
        ]

        with bind.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            for statement in backfill_steps:
                connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_users_reset_token ON users(reset_token)')
            )

        _user_schema_checked = True
