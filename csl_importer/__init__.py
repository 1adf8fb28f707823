"""
CSL Feed Importer
=================

Periodic, idempotent import of the Collegiate StarLeague RSS feed into a
content store.

Main Components:
- Database: SQLite content store with connection pooling and schema management
- Configuration: environment variables with Pydantic validation, plus the options bag
- Ingestion: feed fetching, strict RSS parsing, per-field normalization
- Processing: insertion gate, content ingestor and the import pipeline
- Scheduler: single pending run with retry backoff after failures
"""

__version__ = "0.1.0"
__author__ = "CSL Importer Development Team"
__description__ = "Idempotent RSS importer for Collegiate StarLeague news"

# Core imports for easy access
from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import ImporterError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "ImporterError",
]
