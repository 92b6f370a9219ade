import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, func, inspect, select
from sqlalchemy.orm import sessionmaker

from app.tillpoint.db.models import PermissionCatalog, RoleTemplate, RoleTemplatePermission, Terminal, User
from app.tillpoint.db.seed import DEFAULT_PERMISSIONS, run_seed


def _run_migrations(database_url: str):
    os.environ["DATABASE_URL"] = database_url
    config = Config("alembic.ini")
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


def test_migrations_create_till_tables_and_open_index(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'migrations.db'}"
    _run_migrations(database_url)

    engine = create_engine(database_url, future=True)
    inspector = inspect(engine)
    tables = set(inspector.get_table_names())

    for table in (
        "tenants",
        "stores",
        "users",
        "terminals",
        "till_sessions",
        "till_movements",
        "permission_catalog",
        "role_templates",
        "role_template_permissions",
        "idempotency_records",
        "audit_events",
    ):
        assert table in tables

    indexes = {index["name"]: index for index in inspector.get_indexes("till_sessions")}
    assert indexes["uq_till_sessions_open_terminal"]["unique"]
    engine.dispose()


def test_seed_is_idempotent(tmp_path: Path):
    database_url = f"sqlite+pysqlite:///{tmp_path / 'seed.db'}"
    _run_migrations(database_url)

    engine = create_engine(database_url, future=True)
    SessionLocal = sessionmaker(bind=engine, future=True)

    def counts(db):
        return tuple(
            db.scalar(select(func.count()).select_from(model))
            for model in (PermissionCatalog, RoleTemplate, RoleTemplatePermission, User, Terminal)
        )

    with SessionLocal() as db:
        run_seed(db)
        first = counts(db)
        run_seed(db)
        assert counts(db) == first

        assert first[0] == len(DEFAULT_PERMISSIONS)
        assert first[4] == 1
        assert (
            db.scalar(select(func.count()).select_from(RoleTemplate).where(RoleTemplate.name == "CASHIER"))
            == 1
        )
    engine.dispose()
