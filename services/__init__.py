# services/__init__.py
from .accounts import AccountService, RegistrationForm
from .identity import PartitionedIdentityStore
from .messaging import ConversationService
from .migration import MigrationResult, RoleMigration
from .resolver import CrossPartitionResolver

__all__ = [
    "AccountService",
    "RegistrationForm",
    "PartitionedIdentityStore",
    "ConversationService",
    "MigrationResult",
    "RoleMigration",
    "CrossPartitionResolver",
]
