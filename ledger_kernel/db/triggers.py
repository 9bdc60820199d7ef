"""
Module: ledger_kernel.db.triggers
Responsibility: Loading, installing, and verifying the PostgreSQL triggers
    that keep the closing audit trail append-only.  This is the
    database-level complement to the ORM listeners in db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only (pathlib for
    SQL file loading, sqlalchemy for execution).  MUST NOT import from
    models/, services/, selectors/, domain/, or outer layers.

Invariants enforced (via 4 PostgreSQL triggers across 2 SQL files):
    - closure_records rows: no UPDATE, no DELETE.
    - balance_snapshots rows: no UPDATE, no DELETE.

Failure modes:
    - PostgreSQL RAISE EXCEPTION (restrict_violation) on any violation,
      surfaced by SQLAlchemy as a DBAPIError subclass.
    - FileNotFoundError if SQL files are missing from the sql/ directory.

Audit relevance:
    ORM listeners do not see Core ``update()``/``delete()`` statements, raw
    SQL or psql sessions.  These triggers do.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

SQL_DIR = Path(__file__).parent / "sql"

TRIGGER_FILES = [
    "01_closure_record.sql",
    "02_balance_snapshot.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_closure_record_immutability_update",
    "trg_closure_record_immutability_delete",
    "trg_balance_snapshot_immutability_update",
    "trg_balance_snapshot_immutability_delete",
]


def _load_sql_file(filename: str) -> str:
    return (SQL_DIR / filename).read_text(encoding="utf-8")


def _load_all_trigger_sql() -> str:
    """Concatenate the trigger files in numbered order."""
    sql_parts = []
    for filename in TRIGGER_FILES:
        sql_parts.append(f"-- Loading: {filename}")
        sql_parts.append(_load_sql_file(filename))
        sql_parts.append("")
    return "\n".join(sql_parts)


def supports_triggers(engine: Engine) -> bool:
    """Only PostgreSQL gets database-level triggers; SQLite relies on the ORM listeners."""
    return engine.dialect.name == "postgresql"


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install the audit-trail triggers.

    Preconditions: Tables exist (call after ``Base.metadata.create_all``).
        Engine is connected to PostgreSQL.
    Postconditions: Every trigger in ALL_TRIGGER_NAMES is installed.  Safe
        to call again (CREATE OR REPLACE / DROP TRIGGER IF EXISTS).
    """
    with engine.connect() as conn:
        conn.execute(text(_load_all_trigger_sql()))
        conn.commit()


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove the audit-trail triggers and their functions.

    WARNING: Only for dropping the schema.  A live database without these
    triggers accepts edits to closure history.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_sql_file(DROP_FILE)))
        conn.commit()


def get_installed_triggers(engine: Engine) -> list[str]:
    """Names of the audit-trail triggers present in pg_trigger."""
    with engine.connect() as conn:
        result = conn.execute(
            text(
                "SELECT tgname FROM pg_trigger "
                "WHERE tgname = ANY(:names) ORDER BY tgname"
            ),
            {"names": ALL_TRIGGER_NAMES},
        )
        return [row[0] for row in result]


def triggers_installed(engine: Engine) -> bool:
    return len(get_installed_triggers(engine)) == len(ALL_TRIGGER_NAMES)
