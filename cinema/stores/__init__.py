from cinema.stores.interfaces import EntityStore
from cinema.stores.memory import InMemoryEntityStore

__all__ = ["EntityStore", "InMemoryEntityStore"]
