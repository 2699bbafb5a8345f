from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from lina.core.rate_limit import api_limit, limiter
from lina.dependencies.auth import get_bearer_token
from lina.dependencies.services import get_chat_service
from lina.schemas.chat import AskRequest, AskResponse
from lina.services.chat import ChatService

router = APIRouter()

TOKEN_HEADER = "X-Access-Token"


@router.post("/ask", response_model=AskResponse)
@limiter.limit(api_limit)
async def ask(
    request: Request,
    response: Response,
    body: AskRequest,
    token: Optional[str] = Depends(get_bearer_token),
    chat: ChatService = Depends(get_chat_service),
):
    """
    Protected chat turn. Returns the reply plus the refreshed token, in the body
    and in the X-Access-Token header.
    """
    result = await chat.ask(token, body.message, body.selected_topic)
    state = result.record.state(chat.settings.free_question_limit)
    response.headers[TOKEN_HEADER] = result.token
    return {
        "reply": result.reply,
        "remaining": state["remaining"],
        "subscribed": state["subscribed"],
        "token": result.token,
    }
