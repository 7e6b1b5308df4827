"""Small persistence helpers built on :class:`~portadb.database.Database`."""

from portadb.stores.config import ConfigStore, validate_identifier
from portadb.stores.logs import LogStore

__all__ = ["ConfigStore", "LogStore", "validate_identifier"]
