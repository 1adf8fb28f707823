"""
CSL Importer Processing Module
==============================

Import pipeline components: insertion gate, content ingestor and the run
orchestrator.
"""

from .insertion_gate import InsertionGate
from .content_ingestor import ContentIngestor, TagProvider
from .pipeline import FeedImportPipeline, run_import

__all__ = [
    'InsertionGate',
    'ContentIngestor',
    'TagProvider',
    'FeedImportPipeline',
    'run_import',
]
