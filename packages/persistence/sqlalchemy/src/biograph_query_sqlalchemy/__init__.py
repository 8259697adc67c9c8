from .associations import AssociationWriter
from .codes import CodeAllocator
from .eav import Attribute, AttributeProjector
from .exceptions import PersistenceError, SessionManagementError, TransactionError
from .executor import StatementExecutor
from .uow import TransactionScope

__all__ = [
    "TransactionScope",
    "AssociationWriter",
    "CodeAllocator",
    "Attribute",
    "AttributeProjector",
    "StatementExecutor",
    # Exceptions
    "PersistenceError",
    "SessionManagementError",
    "TransactionError",
]
