# alembic/env.py
import os
import sys
from logging.config import fileConfig

from alembic import context
from dotenv import load_dotenv

# --- Make 'fleetcheck.' imports work when running Alembic from the project root ---
cwd = os.getcwd()
if cwd not in sys.path:
    sys.path.insert(0, cwd)

# Load .env so DATABASE_URL is available when running Alembic
load_dotenv()

config = context.config

# Configure Python logging from alembic.ini (if present)
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# --- Reuse the application's engine (same DATABASE_URL resolution) ---
from fleetcheck.db.session import engine  # noqa: E402
from fleetcheck.models import Base  # noqa: E402  (imports every model module)

config.set_main_option("sqlalchemy.url", str(engine.url))

target_metadata = Base.metadata


def _is_sqlite() -> bool:
    return engine.url.get_backend_name() == "sqlite"


def include_object(object, name, type_, reflected, compare_to):
    """
    Skip Alembic's own version table, and never propose DROP for objects that
    exist in the database but have no ORM counterpart.
    """
    if type_ == "table" and name == "alembic_version":
        return False
    if reflected and compare_to is None and type_ in {
        "table", "index", "unique_constraint", "foreign_key"
    }:
        return False
    return True


def process_revision_directives(context, revision, directives):
    """Drop empty autogenerate revisions."""
    if getattr(context.config.cmd_opts, "autogenerate", False):
        script = directives[0]
        if script.upgrade_ops.is_empty():
            directives[:] = []


def _configure(**kwargs):
    context.configure(
        target_metadata=target_metadata,
        compare_type=True,
        include_object=include_object,
        render_as_batch=_is_sqlite(),  # SQLite-friendly ALTER TABLE
        process_revision_directives=process_revision_directives,
        **kwargs,
    )


def run_migrations_offline():
    _configure(url=str(engine.url), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
