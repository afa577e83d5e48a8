import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend import database
from backend.auth.authentication import Principal
from backend.auth.password import hash_password
from backend.models.user import Role, User
from backend.routes.auth_routes import LoginRequest, login, me


@pytest.fixture
def legacy_engine(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(database, '_user_schema_checked', False)
    engine = create_engine('sqlite://', poolclass=StaticPool)
    with engine.begin() as connection:
        connection.execute(
            text('CREATE TABLE users (id INTEGER PRIMARY KEY, email VARCHAR UNIQUE, hashed_password VARCHAR, role VARCHAR)')
        )
    try:
        yield engine
    finally:
        engine.dispose()


def test_ensure_user_schema_adds_missing_columns(legacy_engine) -> None:
    database.ensure_user_schema(legacy_engine)

    columns = {column['name'] for column in inspect(legacy_engine).get_columns('users')}
    assert {'name', 'reset_token', 'reset_token_expiry', 'created_at', 'updated_at'} <= columns
    indexes = {index['name'] for index in inspect(legacy_engine).get_indexes('users')}
    assert 'idx_users_reset_token' in indexes


def test_ensure_user_schema_runs_once(legacy_engine) -> None:
    database.ensure_user_schema(legacy_engine)
    with legacy_engine.begin() as connection:
        connection.execute(text('DROP INDEX idx_users_reset_token'))

    database.ensure_user_schema(legacy_engine)

    indexes = {index['name'] for index in inspect(legacy_engine).get_indexes('users')}
    assert 'idx_users_reset_token' not in indexes


def test_ensure_user_schema_skips_missing_table(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(database, '_user_schema_checked', False)
    engine = create_engine('sqlite://', poolclass=StaticPool)

    database.ensure_user_schema(engine)

    assert inspect(engine).get_table_names() == []
    assert database._user_schema_checked is True


def _insert_legacy_user(engine, email: str, password: str, role: str) -> None:
    with engine.begin() as connection:
        connection.execute(
            text('INSERT INTO users (email, hashed_password, role) VALUES (:email, :hashed_password, :role)'),
            {'email': email, 'hashed_password': hash_password(password), 'role': role},
        )


def test_migrated_user_can_log_in(legacy_engine) -> None:
    _insert_legacy_user(legacy_engine, 'a@x.com', 'secret1', 'AGENT')
    database.ensure_user_schema(legacy_engine)
    database.Base.metadata.create_all(bind=legacy_engine, tables=[User.__table__])

    db = sessionmaker(autocommit=False, autoflush=False, bind=legacy_engine)()
    try:
        response = login(LoginRequest(email='a@x.com', password='secret1'), db)
        current = me(principal=Principal(email='a@x.com', role=Role.AGENT), db=db)
    finally:
        db.close()

    assert response.name == 'a@x.com'
    assert response.role is Role.AGENT
    assert current.name == 'a@x.com'


@pytest.mark.parametrize(
    ('legacy_role', 'expected_role'),
    [('student', Role.AGENT), ('admin', Role.ADMIN), ('ADMIN', Role.ADMIN), (None, Role.AGENT)],
)
def test_migration_maps_legacy_roles(legacy_engine, legacy_role, expected_role: Role) -> None:
    _insert_legacy_user(legacy_engine, 'legacy@x.com', 'secret1', legacy_role)

    database.ensure_user_schema(legacy_engine)

    db = sessionmaker(bind=legacy_engine)()
    try:
        user = db.query(User).filter(User.email == 'legacy@x.com').one()
        assert user.role is expected_role
        assert user.created_at is not None
        assert user.updated_at is not None
        assert user.reset_token is None
    finally:
        db.close()
