from tandem.memory.manager import DEFAULT_TABLE_TYPES, TableMemoryManager
from tandem.memory.messages import MessageManager
from tandem.memory.similarity import cosine_similarities, edit_distance

__all__ = [
    "DEFAULT_TABLE_TYPES",
    "MessageManager",
    "TableMemoryManager",
    "cosine_similarities",
    "edit_distance",
]
