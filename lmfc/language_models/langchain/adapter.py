"""
LangChain adapter implementation.

Connects the chat model interface of the package to LangChain chat
models, which in turn connect to the model providers. Wrapped with
the prompt-based function calling, a LangChain model of a local
backend without native tool support can be given tools:

    ```python
    from lmfc.language_models.langchain import create_chat_model

    model = create_chat_model()  # backend read from config.toml
    ```
"""

import uuid
from collections.abc import Iterator, AsyncIterator, Sequence
from typing import Any

from langchain_core.language_models.chat_models import (
    BaseChatModel as LangChainBaseChatModel,
)
from langchain_core.language_models.base import LanguageModelInput
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_core.runnables import Runnable
from pydantic_core import to_json

from lmfc.config.config import LanguageModelSettings, Settings
from lmfc.language_models.base import BaseChatModel
from lmfc.language_models.function_calling import (
    PromptBasedFunctionCallingModel,
)
from lmfc.language_models.messages import (
    ChatOptions,
    ChatResponse,
    ContentItem,
    FunctionCallContent,
    FunctionResultContent,
    Message,
    TextContent,
)
from lmfc.language_models.langchain.models import create_model_from_settings
from lmfc.utils.logging import LoggerBase, get_logger

logger: LoggerBase = get_logger(__name__)


def _content_text(content: str | list[Any]) -> str:
    # LangChain content is a string or a list of content blocks
    if isinstance(content, str):
        return content
    parts: list[str] = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get('type') == 'text':
            parts.append(str(block.get('text', "")))
    return "".join(parts)


def _result_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    return to_json(result, serialize_unknown=True).decode()


class LangChainChatModel(BaseChatModel):
    """Adapter for LangChain chat models."""

    def __init__(
        self,
        settings: LanguageModelSettings,
        model: LangChainBaseChatModel | None = None,
    ):
        """
        Args:
            settings: the specification of the model
            model: a LangChain model to use in place of the one
                created from the settings
        """
        super().__init__(settings)
        self._model = model

    def _get_model(
        self, options: ChatOptions | None
    ) -> Runnable[LanguageModelInput, BaseMessage]:
        model = self._model or create_model_from_settings(
            self.settings  # type: ignore (set in constructor)
        )
        if options is not None and options.tools:
            # native tool calling, when the backend supports it
            return model.bind_tools(
                [
                    {'type': "function", 'function': tool.json_schema()}
                    for tool in options.tools
                ]
            )
        return model

    def _invoke_kwargs(self, options: ChatOptions | None) -> dict[str, Any]:
        if options is not None and options.stop_sequences:
            return {'stop': list(options.stop_sequences)}
        return {}

    def _convert_messages(
        self, messages: Sequence[Message]
    ) -> list[BaseMessage]:
        """Convert generic messages to LangChain messages."""
        lc_messages: list[BaseMessage] = []
        for msg in messages:
            match msg.role:
                case 'system':
                    lc_messages.append(SystemMessage(content=msg.text))
                case 'user':
                    lc_messages.append(HumanMessage(content=msg.text))
                case 'assistant':
                    lc_messages.append(
                        AIMessage(
                            content=msg.text,
                            tool_calls=[
                                {
                                    'name': item.name,
                                    'args': item.arguments or {},
                                    'id': item.call_id,
                                    'type': "tool_call",
                                }
                                for item in msg.contents
                                if isinstance(item, FunctionCallContent)
                            ],
                        )
                    )
                case 'tool':
                    lc_messages.extend(
                        ToolMessage(
                            content=_result_text(item.result),
                            tool_call_id=item.call_id,
                        )
                        for item in msg.contents
                        if isinstance(item, FunctionResultContent)
                    )
                    # text in a tool message has no tool_call_id
                    if msg.text:
                        lc_messages.append(HumanMessage(content=msg.text))
        return lc_messages

    def _convert_response(self, response: BaseMessage) -> ChatResponse:
        """Convert LangChain response to generic response."""
        contents: list[ContentItem] = []
        text = _content_text(response.content)
        if text:
            contents.append(TextContent(text=text))
        for call in getattr(response, 'tool_calls', None) or []:
            contents.append(
                FunctionCallContent(
                    call_id=call.get('id') or uuid.uuid4().hex[:6],
                    name=call['name'],
                    arguments=call.get('args'),
                )
            )
        metadata = response.response_metadata or {}
        finish_reason = metadata.get('finish_reason') or metadata.get(
            'done_reason'
        )
        return ChatResponse(
            messages=[Message(role='assistant', contents=contents)],
            finish_reason=finish_reason,
        )

    def chat(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        response = self._get_model(options).invoke(
            self._convert_messages(messages), **self._invoke_kwargs(options)
        )
        return self._convert_response(response)

    async def achat(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        response = await self._get_model(options).ainvoke(
            self._convert_messages(messages), **self._invoke_kwargs(options)
        )
        return self._convert_response(response)

    def stream(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> Iterator[str]:
        for chunk in self._get_model(options).stream(
            self._convert_messages(messages), **self._invoke_kwargs(options)
        ):
            text = _content_text(chunk.content)
            if text:
                yield text

    async def astream(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> AsyncIterator[str]:
        async for chunk in self._get_model(options).astream(
            self._convert_messages(messages), **self._invoke_kwargs(options)
        ):
            text = _content_text(chunk.content)
            if text:
                yield text


def create_chat_model(
    settings: Settings | None = None,
    logger: LoggerBase = logger,
) -> PromptBasedFunctionCallingModel:
    """
    Create the chat model of the configured backend, wrapped with the
    prompt-based function calling.

    Args:
        settings: the settings (defaults to those read from
            config.toml)
        logger: a logger object (defaults to console logging)
    """
    if settings is None:
        settings = Settings()
    return PromptBasedFunctionCallingModel(
        LangChainChatModel(settings.backend),
        settings.function_calling,
        logger,
    )
