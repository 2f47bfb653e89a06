import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from app.core.context_builder import build_coaching_context
from app.core.errors import CoachError, InvalidInput, SchemaViolation, UpstreamError
from app.core.prompt import compose_prompt
from app.core.response_contract import CoachResponse, render_reply, soft_diagnostics, validate_coach_response
from app.core.types import ChatMessage
from app.db.stores import CoachStores, get_coach_stores
from app.services.llm import LLMClient, get_llm_client

router = APIRouter(prefix="/api", tags=["coach"])
logger = logging.getLogger("uvicorn.error")


class RecentMessage(BaseModel):
    sender: str = ""
    text: str = ""


class AskMiraRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Optional at the schema level so a missing field is a 400 with our error body.
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_message: Optional[str] = Field(default=None, alias="userMessage")
    recent_messages: Optional[list[RecentMessage]] = Field(default=None, alias="recentMessages")


class AskMiraResponse(BaseModel):
    reply: str


def handle_coach_request(
    payload: AskMiraRequest,
    *,
    stores: CoachStores,
    llm_client: LLMClient,
    now: Optional[datetime] = None,
) -> CoachResponse:
    user_id = (payload.user_id or "").strip()
    user_message = (payload.user_message or "").strip()
    if not user_id or not user_message:
        raise InvalidInput()

    context = build_coaching_context(user_id, stores=stores, now=now)
    history = [ChatMessage(sender=item.sender, text=item.text) for item in payload.recent_messages or []]
    prompt = compose_prompt(context, history)
    raw = llm_client.complete(prompt.instruction, prompt.turns, user_message)
    response = validate_coach_response(raw)

    for note in soft_diagnostics(response):
        logger.warning("coach_soft_diagnostic user_id=%s detail=%s", user_id, note)
    logger.info(
        "coach_reply user_id=%s prompt_version=%s micro_actions=%s history_turns=%s",
        user_id,
        prompt.version,
        len(response.micro_actions),
        len(prompt.turns),
    )
    return response


def _error_response(exc: CoachError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.public_message})


@router.options("/ask-mira", status_code=status.HTTP_204_NO_CONTENT)
def ask_mira_preflight() -> Response:
    # Cross-origin preflights are answered by the CORS middleware before reaching here.
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/ask-mira", response_model=AskMiraResponse, status_code=status.HTTP_200_OK)
def ask_mira(
    payload: AskMiraRequest,
    stores: CoachStores = Depends(get_coach_stores),
    llm_client: LLMClient = Depends(get_llm_client),
) -> AskMiraResponse:
    try:
        response = handle_coach_request(payload, stores=stores, llm_client=llm_client)
    except InvalidInput as exc:
        return _error_response(exc)
    except UpstreamError as exc:
        logger.error(
            "coach_upstream_error user_id=%s provider=%s model=%s status=%s detail=%s",
            payload.user_id,
            exc.provider,
            exc.model,
            exc.upstream_status,
            str(exc),
        )
        return _error_response(exc)
    except SchemaViolation as exc:
        logger.warning("coach_schema_violation user_id=%s detail=%s", payload.user_id, str(exc))
        return _error_response(exc)
    except CoachError as exc:
        logger.error("coach_context_error user_id=%s kind=%s detail=%s", payload.user_id, type(exc).__name__, str(exc))
        return _error_response(exc)
    except Exception as exc:
        logger.exception("coach_unhandled_error user_id=%s detail=%s", payload.user_id, str(exc))
        return _error_response(UpstreamError(str(exc)))
    return AskMiraResponse(reply=render_reply(response))
