# stores/__init__.py
from .base import ConversationStore, MessageStore, Stores, TradeProfileStore, UserStore

__all__ = ["ConversationStore", "MessageStore", "Stores", "TradeProfileStore", "UserStore"]
