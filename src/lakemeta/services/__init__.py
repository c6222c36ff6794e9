from .schema_prober import SchemaProber
from .synthesizer import SynthesisResult, TableMetadataSynthesizer
from .indexer import TableDirectoryIndexer

__all__ = [
    "SchemaProber",
    "SynthesisResult",
    "TableMetadataSynthesizer",
    "TableDirectoryIndexer",
]
