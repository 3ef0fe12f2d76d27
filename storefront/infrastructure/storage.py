from contextlib import contextmanager
from typing import Iterator, Optional

from storefront.core_settings import Settings
from storefront.domain.repository import Repository
from .db import Database
from .memory_repository import InMemoryRepository, MemoryStore
from .sql_repository import SqlRepository


class Storage:
    """The configured storage backend; hands out one repository per unit of work."""

    def __init__(self, backend: str, database: Optional[Database] = None, memory: Optional[MemoryStore] = None):
        self.backend = backend
        self.database = database
        self.memory = memory

    @classmethod
    def from_settings(cls, settings: Settings) -> "Storage":
        backend = settings.STORAGE_BACKEND.lower()
        if backend == "memory":
            return cls("memory", memory=MemoryStore())
        if backend == "sql":
            return cls("sql", database=Database(settings.database_url))
        raise ValueError(f"Unknown STORAGE_BACKEND {settings.STORAGE_BACKEND!r}; expected 'sql' or 'memory'")

    def init(self):
        if self.database is not None:
            self.database.init_models()

    @contextmanager
    def repository(self) -> Iterator[Repository]:
        if self.database is not None:
            with self.database.session_scope() as db:
                yield SqlRepository(db)
        else:
            yield InMemoryRepository(self.memory)

    def close(self):
        if self.database is not None:
            self.database.dispose()
