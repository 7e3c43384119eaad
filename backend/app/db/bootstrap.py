from __future__ import annotations

from dataclasses import dataclass, field
import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.db.session import engine as default_engine

logger = logging.getLogger(__name__)

# Column names as they exist in the database, which the deployment owns and migrates.
REQUIRED_COLUMNS: dict[str, set[str]] = {
    "otp_codes": {"id", "type", "value", "code", "expires_at", "verified", "created_at"},
    "otp_logs": {"id", "action", "type", "value", "success", "error_message", "created_at"},
}


@dataclass
class SchemaReport:
    database_ok: bool = True
    missing_tables: list[str] = field(default_factory=list)
    missing_columns: dict[str, list[str]] = field(default_factory=dict)
    error: str | None = None

    @property
    def schema_ok(self) -> bool:
        return self.database_ok and not self.missing_tables and not self.missing_columns


def inspect_schema(engine: Engine | None = None) -> SchemaReport:
    report = SchemaReport()
    try:
        with (engine or default_engine).connect() as connection:
            connection.execute(text("SELECT 1"))
            inspector = inspect(connection)
            table_names = set(inspector.get_table_names())
            for table_name, columns in REQUIRED_COLUMNS.items():
                if table_name not in table_names:
                    report.missing_tables.append(table_name)
                    continue
                existing = {item["name"] for item in inspector.get_columns(table_name)}
                missing = sorted(columns - existing)
                if missing:
                    report.missing_columns[table_name] = missing
    except SQLAlchemyError as exc:
        report.database_ok = False
        report.error = str(exc)
    return report


def check_runtime_schema(engine: Engine | None = None) -> SchemaReport:
    report = inspect_schema(engine)
    if not report.database_ok:
        logger.warning("Database is unreachable at startup: %s", report.error)
    elif report.missing_tables or report.missing_columns:
        logger.warning(
            "Database schema is outdated (missing tables=%s, columns=%s). Run `alembic upgrade head`.",
            report.missing_tables,
            report.missing_columns,
        )
    return report
