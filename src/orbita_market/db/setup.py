# src/orbita_market/db/setup.py
import logging
import hashlib
from typing import List

import sqlalchemy as sa
from sqlalchemy import inspect, UniqueConstraint

from orbita_market.db.base_session import Base
import orbita_market.db.models  # noqa: F401

logger = logging.getLogger(__name__)

TABLE_PREFIX = "mk_"


def _marketplace_tables(inspector) -> List[str]:
    return sorted(t for t in inspector.get_table_names() if t.startswith(TABLE_PREFIX))


def compute_schema_fingerprint(eng: sa.Engine) -> str:
    """
    SHA-256 over `table:column:TYPE` lines of the live marketplace tables.

    Other tables sharing the database do not affect the fingerprint.
    """
    inspector = inspect(eng)

    lines = [
        f"{table}:{col['name']}:{str(col['type']).upper()}"
        for table in _marketplace_tables(inspector)
        for col in sorted(inspector.get_columns(table), key=lambda c: c["name"])
    ]
    return hashlib.sha256("\n".join(lines).encode("utf-8")).hexdigest()


def _expected_unique_sets(table: sa.Table) -> List[frozenset]:
    return [
        frozenset(col.name for col in constraint.columns)
        for constraint in table.constraints
        if isinstance(constraint, UniqueConstraint) and len(constraint.columns) > 1
    ]


def verify_database_state(eng: sa.Engine):
    """
    Compare the models against the live database.

    Every table and column must exist, and every composite unique
    constraint must be present: the ledger relies on
    (package_id, user_id) and the catalog on (package_ref, version).
    """
    inspector = inspect(eng)
    live_tables = set(inspector.get_table_names())

    problems = []

    for table in Base.metadata.sorted_tables:
        if table.name not in live_tables:
            problems.append(f"missing table {table.name}")
            continue

        live_columns = {c["name"] for c in inspector.get_columns(table.name)}
        problems.extend(
            f"missing column {table.name}.{column.name}"
            for column in table.columns
            if column.name not in live_columns
        )

        live_uniques = {
            frozenset(u["column_names"]) for u in inspector.get_unique_constraints(table.name)
        }
        # Unique indexes count as well
        live_uniques |= {
            frozenset(ix["column_names"])
            for ix in inspector.get_indexes(table.name)
            if ix.get("unique")
        }
        problems.extend(
            f"missing unique constraint {table.name}({', '.join(sorted(cols))})"
            for cols in _expected_unique_sets(table)
            if cols not in live_uniques
        )

    if problems:
        logger.critical("Marketplace schema drift detected!")
        for problem in problems:
            logger.critical(f"  {problem}")
        raise RuntimeError(
            "Database integrity violation. Schema does not match application version."
        )

    logger.info("Marketplace schema validated.")


def initialize_database(eng: sa.Engine, reset_tables: bool = False) -> str:
    """
    Create the catalog and ledger tables (dropping them first when
    `reset_tables` is set), validate them and return the schema fingerprint.
    """
    if reset_tables:
        logger.info("Dropping marketplace tables...")
        Base.metadata.drop_all(eng)

    Base.metadata.create_all(eng)
    verify_database_state(eng)

    fingerprint = compute_schema_fingerprint(eng)
    logger.info(f"Schema fingerprint: {fingerprint[:16]}...")
    return fingerprint
