# models/__init__.py
from .user import Partition, Role, UserAccount, partition_for_role, parse_role
from .trade_profile import TradeProfile, TradeProfileForm
from .conversation import Conversation, Message
from .identity import DisplayIdentity, IdentityRef, Resolution, ResolutionTrace

__all__ = [
    "Partition",
    "Role",
    "UserAccount",
    "partition_for_role",
    "parse_role",
    "TradeProfile",
    "TradeProfileForm",
    "Conversation",
    "Message",
    "DisplayIdentity",
    "IdentityRef",
    "Resolution",
    "ResolutionTrace",
]
