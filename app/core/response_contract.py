from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from app.core.errors import SchemaViolation
from app.core.types import ActionCategory

_URL_ADAPTER = TypeAdapter(AnyHttpUrl)


@dataclass(frozen=True)
class ResponseContract:
    """Cardinality bounds of the structured coach reply.

    The prompt composer describes these bounds to the model and the validator
    enforces them, so a change here is a new prompt version.
    """

    max_micro_actions: int = 3
    min_follow_ups: int = 0
    max_follow_ups: int = 3
    follow_up_soft_max_words: int = 5


DEFAULT_CONTRACT = ResponseContract()


class MicroAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    learn_more_link: Optional[str] = Field(default=None, alias="learnMoreLink")
    category: ActionCategory

    @field_validator("title", "description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("learn_more_link")
    @classmethod
    def _link_shape(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        # Shape only; reachability is never checked.
        try:
            _URL_ADAPTER.validate_python(value)
        except ValidationError as exc:
            raise ValueError("learnMoreLink must be an absolute http(s) URL") from exc
        return value


class CoachResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    human_message: str = Field(alias="humanMessage", min_length=1)
    # Conversational turns may omit both lists.
    micro_actions: list[MicroAction] = Field(default_factory=list, alias="microActions")
    follow_up_prompts: list[str] = Field(default_factory=list, alias="followUpPrompts")

    @field_validator("human_message")
    @classmethod
    def _message_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("humanMessage must not be blank")
        return value

    @field_validator("follow_up_prompts")
    @classmethod
    def _prompts_not_blank(cls, value: list[str]) -> list[str]:
        if any(not item.strip() for item in value):
            raise ValueError("followUpPrompts entries must not be blank")
        return value


def parse_llm_json(raw_text: str) -> dict[str, Any]:
    try:
        parsed = json.loads(raw_text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    # Models sometimes wrap the object in prose or a ```json fence.
    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start != -1 and end != -1 and end > start:
        try:
            parsed = json.loads(raw_text[start : end + 1])
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass
    raise ValueError("Invalid JSON response from LLM")


def validate_coach_response(raw_text: str, contract: ResponseContract = DEFAULT_CONTRACT) -> CoachResponse:
    try:
        payload = parse_llm_json(raw_text or "")
    except ValueError as exc:
        raise SchemaViolation("model reply is not a JSON object") from exc

    try:
        response = CoachResponse.model_validate(payload)
    except ValidationError as exc:
        raise SchemaViolation(f"model reply failed schema validation: {exc.errors(include_url=False)}") from exc

    if len(response.micro_actions) > contract.max_micro_actions:
        raise SchemaViolation(
            f"microActions has {len(response.micro_actions)} entries, max {contract.max_micro_actions}"
        )
    prompt_count = len(response.follow_up_prompts)
    if prompt_count < contract.min_follow_ups or prompt_count > contract.max_follow_ups:
        raise SchemaViolation(
            f"followUpPrompts has {prompt_count} entries, expected "
            f"{contract.min_follow_ups}-{contract.max_follow_ups}"
        )
    return response


def soft_diagnostics(response: CoachResponse, contract: ResponseContract = DEFAULT_CONTRACT) -> list[str]:
    notes: list[str] = []
    for idx, prompt in enumerate(response.follow_up_prompts):
        words = len(prompt.split())
        if words > contract.follow_up_soft_max_words:
            notes.append(f"followUpPrompts[{idx}] has {words} words")
    return notes


def render_reply(response: CoachResponse) -> str:
    return response.model_dump_json(by_alias=True, exclude_none=True)
