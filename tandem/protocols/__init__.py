from tandem.protocols.components import Action, Evaluator, Provider, TaskWorker
from tandem.protocols.memory import MemoryManager
from tandem.protocols.services import PublisherService, Service
from tandem.protocols.storage import DatabaseAdapter

__all__ = [
    "Action",
    "DatabaseAdapter",
    "Evaluator",
    "MemoryManager",
    "Provider",
    "PublisherService",
    "Service",
    "TaskWorker",
]
