from mycotrack.store.base import CollectionStore, MovementMeta  # noqa: F401
from mycotrack.store.memory import MemoryStore  # noqa: F401
from mycotrack.store.sql import SqlAlchemyStore  # noqa: F401
