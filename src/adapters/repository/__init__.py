"""Ledger adapters - JSON document and database implementations."""

from .json_file import JsonFileSubmissionLedger
from .postgres import PostgresSubmissionLedger, run_migrations

__all__ = ["JsonFileSubmissionLedger", "PostgresSubmissionLedger", "run_migrations"]
