from fastapi import APIRouter, Depends, Form, Response, status

from config import ALLOW_UNRESOLVED_CONVERSATIONS
from db import get_stores
from routes.auth import get_resolver, require_user
from security import AuthUser
from services.messaging import ConversationService
from services.resolver import CrossPartitionResolver
from stores.base import Stores

router = APIRouter()


def get_conversation_service(
    stores: Stores = Depends(get_stores),
    resolver: CrossPartitionResolver = Depends(get_resolver),
) -> ConversationService:
    return ConversationService(
        stores.conversations,
        stores.messages,
        resolver,
        allow_unresolved=ALLOW_UNRESOLVED_CONVERSATIONS,
    )


# ---------------------------------------------------------
# 1. Conversation list / start a conversation
# ---------------------------------------------------------
@router.get("")
async def list_conversations(
    user: AuthUser = Depends(require_user),
    service: ConversationService = Depends(get_conversation_service),
):
    """Conversations the caller takes part in, most recently active first."""
    conversations = await service.list_conversations(user)
    return {
        "success": True,
        "count": len(conversations),
        "data": [c.model_dump(mode="json") for c in conversations],
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_conversation(
    response: Response,
    receiver_id: str = Form(""),
    user: AuthUser = Depends(require_user),
    service: ConversationService = Depends(get_conversation_service),
):
    """
    Open (or reuse) the conversation between the caller and receiver_id.
    201 when a new conversation was created, 200 when one already existed.
    """
    conversation, created = await service.create_or_get_conversation(user, receiver_id)
    if not created:
        response.status_code = status.HTTP_200_OK
    return {
        "success": True,
        "message": "Conversation created successfully" if created else "Conversation already exists",
        "data": conversation.model_dump(mode="json"),
    }


# ---------------------------------------------------------
# 2. One conversation
# ---------------------------------------------------------
@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    user: AuthUser = Depends(require_user),
    service: ConversationService = Depends(get_conversation_service),
):
    conversation = await service.get_conversation(user, conversation_id)
    return {"success": True, "data": conversation.model_dump(mode="json")}


# ---------------------------------------------------------
# 3. Messages
# ---------------------------------------------------------
@router.get("/{conversation_id}/messages")
async def list_messages(
    conversation_id: str,
    user: AuthUser = Depends(require_user),
    service: ConversationService = Depends(get_conversation_service),
):
    messages = await service.list_messages(user, conversation_id)
    return {
        "success": True,
        "count": len(messages),
        "data": [m.model_dump(mode="json") for m in messages],
    }


@router.post("/{conversation_id}/messages", status_code=status.HTTP_201_CREATED)
async def send_message(
    conversation_id: str,
    content: str = Form(""),  # empty content is rejected by the service, not by form parsing
    user: AuthUser = Depends(require_user),
    service: ConversationService = Depends(get_conversation_service),
):
    message = await service.send_message(user, conversation_id, content)
    return {
        "success": True,
        "message": "Message sent successfully",
        "data": message.model_dump(mode="json"),
    }
