"""
Persistence package exports.
"""

from core.persistence.gateway import PersistenceError, PersistenceGateway
from core.persistence.memory_gateway import InMemoryPersistenceGateway
from core.persistence.outbox import Outbox, OutboxEntry

__all__ = [
    "PersistenceError",
    "PersistenceGateway",
    "InMemoryPersistenceGateway",
    "Outbox",
    "OutboxEntry",
]
