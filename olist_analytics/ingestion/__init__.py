"""
Raw Data Ingestion Module
"""
from .raw_loader import FileFormat, RawTableLoader, RawTables

__all__ = [
    "FileFormat",
    "RawTableLoader",
    "RawTables",
]
