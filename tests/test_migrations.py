import importlib.util
from pathlib import Path

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from retail_ledger.core.database import Base
import retail_ledger.models  # noqa: F401

VERSIONS = Path(__file__).resolve().parents[1] / "migrations" / "versions"


def _load_revision():
    path = next(VERSIONS.glob("*_create_retail_ledger_schema.py"))
    spec = importlib.util.spec_from_file_location("initial_revision", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_initial_revision_matches_models():
    revision = _load_revision()
    engine = create_engine("sqlite://")

    with engine.begin() as conn:
        ctx = MigrationContext.configure(conn)
        with Operations.context(ctx):
            revision.upgrade()

        inspector = inspect(conn)
        assert set(inspector.get_table_names()) == set(Base.metadata.tables)
        for name, table in Base.metadata.tables.items():
            migrated = {c["name"] for c in inspector.get_columns(name)}
            assert migrated == set(table.columns.keys()), name

        indexes = {i["name"] for i in inspector.get_indexes("customer_transactions")}
        assert "ix_customer_transactions_customer_date" in indexes

        with Operations.context(ctx):
            revision.downgrade()
        assert inspect(conn).get_table_names() == []
