"""Language model access: free text, schema-constrained objects and tool binding."""

from collections.abc import Sequence
from typing import Any, TypeVar

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from .config import ResearchConfig
from .errors import UpstreamModelError
from .logging import get_logger, log_duration, log_llm_call

logger = get_logger("llm")

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def create_chat_model(
    config: ResearchConfig, model_name: str | None = None
) -> ChatOpenAI:
    """Create the OpenAI chat model used by every component."""
    return ChatOpenAI(
        model=model_name or config.model_name, temperature=config.temperature
    )


def _build_messages(
    prompt: str | Sequence[BaseMessage], system: str | None
) -> list[BaseMessage]:
    messages: list[BaseMessage] = []
    if system:
        messages.append(SystemMessage(content=system))
    if isinstance(prompt, str):
        messages.append(HumanMessage(content=prompt))
    else:
        messages.extend(prompt)
    return messages


def message_text(content: str | list) -> str:
    """Flatten message content to plain text, keeping only text blocks."""
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type", "text") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class StructuredModelClient:
    """Wraps a chat model behind two calls: ``generate_text`` and ``generate_object``.

    Any provider failure, and any response that does not validate against the
    requested schema, surfaces as ``UpstreamModelError``. Nothing is retried.
    """

    def __init__(self, model: BaseChatModel, name: str = "default"):
        self.model = model
        self.name = name

    @log_llm_call
    async def generate_text(
        self, prompt: str | Sequence[BaseMessage], *, system: str | None = None
    ) -> str:
        messages = _build_messages(prompt, system)
        with log_duration(logger, "generate_text", client=self.name) as result_ctx:
            try:
                response = await self.model.ainvoke(messages)
            except Exception as e:
                raise UpstreamModelError(
                    f"Text generation failed: {e}", operation="generate_text"
                ) from e
            text = message_text(response.content)
            result_ctx["response_length"] = len(text)
        return text

    @log_llm_call
    async def generate_object(
        self,
        schema: type[SchemaT],
        prompt: str | Sequence[BaseMessage],
        *,
        system: str | None = None,
    ) -> SchemaT:
        messages = _build_messages(prompt, system)
        with log_duration(
            logger, "generate_object", client=self.name, schema=schema.__name__
        ):
            try:
                structured = self.model.with_structured_output(
                    schema, method="function_calling"
                )
                result = await structured.ainvoke(messages)
            except Exception as e:
                raise UpstreamModelError(
                    f"Structured generation for {schema.__name__} failed: {e}",
                    operation="generate_object",
                ) from e
            if isinstance(result, dict):
                try:
                    result = schema.model_validate(result)
                except ValueError as e:
                    raise UpstreamModelError(
                        f"Response does not match {schema.__name__}: {e}",
                        operation="generate_object",
                    ) from e
            if not isinstance(result, schema):
                raise UpstreamModelError(
                    f"Response does not match {schema.__name__}",
                    operation="generate_object",
                )
        return result

    def bind_tools(self, tools: Sequence[Any]):
        """Return the underlying model with ``tools`` bound for tool calling."""
        return self.model.bind_tools(list(tools))
