# models/conversation.py
from datetime import datetime

from pydantic import BaseModel, Field

from models.identity import DisplayIdentity

MESSAGE_MAX_LENGTH = 2000
SNIPPET_MAX_LENGTH = 120


def pair_key(a: str, b: str) -> str:
    """Order-independent key of a participant pair; unique per conversation."""
    first, second = sorted((a, b))
    return f"{first}|{second}"


def make_snippet(content: str) -> str:
    text = " ".join(content.split())
    if len(text) <= SNIPPET_MAX_LENGTH:
        return text
    return text[: SNIPPET_MAX_LENGTH - 1].rstrip() + "…"


class Conversation(BaseModel):
    id: str
    participants: list[str] = Field(..., min_length=2, max_length=2)
    last_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def pair_key(self) -> str:
        return pair_key(*self.participants)


class Message(BaseModel):
    id: str
    conversation_id: str
    sender_ref: str
    receiver_ref: str
    content: str = Field(..., min_length=1, max_length=MESSAGE_MAX_LENGTH)
    created_at: datetime


# --- Views returned to the HTTP layer, with identity references resolved ---

class ConversationSummary(BaseModel):
    id: str
    participants: list[DisplayIdentity]
    last_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MessageView(BaseModel):
    id: str
    conversation_id: str
    sender: DisplayIdentity
    receiver: DisplayIdentity
    content: str
    created_at: datetime
