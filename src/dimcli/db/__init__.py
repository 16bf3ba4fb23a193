"""Persistent data store opened once by the startup gate."""

from dimcli.db.connection import Base, DataStore, open_store

__all__ = ["Base", "DataStore", "open_store"]
