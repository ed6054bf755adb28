"""
Prompt-based function calling.

Many small or local language models follow instructions well but have
no native support for tool calls. The `PromptBasedFunctionCallingModel`
wraps the chat model of such a backend and makes it behave as if it
supported tool calls:

- the tools in the request options are described in a system message
    that is prepended to the conversation, together with the format
    the model must use to call them;
- the function calls and function results already in the conversation
    are rewritten as text in the same format;
- the tool calls the model writes in its completion are parsed and
    returned as FunctionCallContent items.

The format of the tool calls in the completion is

    ```
    <tool_calls>
      <tool_call_json>{"name": "tool_name", "arguments": {...}}</tool_call_json>
      <tool_call_json>...</tool_call_json>
    </tool_calls>
    ```

and the results of the calls are given back to the model as

    ```
    <tool_call_result>{"id": "call id", "result": ...}</tool_call_result>
    ```

The closing tag of the tool calls block is added to the stop
sequences of the request, so that the model stops after calling the
tools.

**Example**:

    ```python
    from lmfc.language_models.function_calling import (
        use_prompt_based_function_calling,
    )
    from lmfc.language_models.langchain import LangChainChatModel
    from lmfc.language_models.messages import ChatOptions, Message
    from lmfc.language_models.tools import create_tool
    from lmfc.config.config import LanguageModelSettings

    backend = LangChainChatModel(
        LanguageModelSettings(model="Ollama/llama3.1")
    )
    model = use_prompt_based_function_calling(backend)
    response = model.chat(
        [Message(role='user', content="What do 3 pairs cost?")],
        ChatOptions(tools=[create_tool(get_price)]),
    )
    for call in response.function_calls:
        print(call.name, call.arguments)
    ```

Tool calls are only extracted from complete responses (chat and
achat). The streaming calls send the same rewritten request, but the
text chunks are passed through unchanged, tags included: a tag may be
split across chunks, and no buffering is attempted.
"""

import json
import uuid
from collections.abc import AsyncIterator, Iterator, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ValidationError
from pydantic_core import to_json

from lmfc.config.config import FunctionCallingSettings
from lmfc.language_models.base import BaseChatModel, DelegatingChatModel
from lmfc.language_models.messages import (
    ChatOptions,
    ChatResponse,
    FunctionCallContent,
    FunctionResultContent,
    Message,
    Role,
    TextContent,
    clone_messages,
    clone_options,
)
from lmfc.language_models.tools import ToolDescriptor
from lmfc.utils.logging import LoggerBase, get_logger

logger: LoggerBase = get_logger(__name__)

TOOL_CALLS_START = "<tool_calls>"
TOOL_CALLS_END = "</tool_calls>"
TOOL_CALL_START = "<tool_call_json>"
TOOL_CALL_END = "</tool_call_json>"
TOOL_RESULT_START = "<tool_call_result>"
TOOL_RESULT_END = "</tool_call_result>"
# Any closing tag of the protocol ends a tool call
CLOSING_TAG_PREFIX = "</tool"

MESSAGE_INTRO = (
    "You are an AI model with function calling capabilities. Call one "
    "or more functions if they are relevant to the user's query."
)

_decoder = json.JSONDecoder()


def _to_json(value: Any, indent: int = 2) -> str:
    # serialize_unknown: objects without a JSON form are written as str()
    return to_json(
        value, indent=indent or None, serialize_unknown=True
    ).decode()


def _tool_prompt_text(tools_json: str) -> str:
    return f"""{MESSAGE_INTRO}

For each function call, write a JSON object with the function name and the arguments within {TOOL_CALL_START}{TOOL_CALL_END} tags, as follows:
{TOOL_CALLS_START}
  {TOOL_CALL_START}{{"name": "tool_name", "arguments": {{"argname1": argval1, "argname2": argval2, ...}}}}{TOOL_CALL_END}
{TOOL_CALLS_END}
The content of {TOOL_CALL_START}{TOOL_CALL_END} MUST be a valid JSON object, with no other text.

You will receive the result of each call as a JSON object within {TOOL_RESULT_START}{TOOL_RESULT_END} tags. Use it to answer the user's question, without repeating the same function call.

Here are the available tools:
<tools>{tools_json}</tools>
"""


# --- request ---------------------------------------------------------


def compose_tool_prompt(
    tools: Sequence[ToolDescriptor], indent: int = 2
) -> Message:
    """
    The system message that describes the tools to the model and the
    format of the tool calls.

    Args:
        tools: the tool descriptors
        indent: indentation of the JSON array of the tool schemas

    Returns:
        a message with role 'system'
    """
    tools_json = _to_json([tool.json_schema() for tool in tools], indent)
    return Message(role='system', content=_tool_prompt_text(tools_json))


def _tool_call_unit(call: FunctionCallContent, indent: int) -> str:
    payload: dict[str, Any] = {'callId': call.call_id, 'name': call.name}
    if call.arguments is not None:
        payload['arguments'] = call.arguments
    return f"{TOOL_CALL_START}{_to_json(payload, indent)}{TOOL_CALL_END}"


def _tool_result_unit(result: FunctionResultContent, indent: int) -> str:
    payload: dict[str, Any] = {'id': result.call_id}
    if result.result is not None:
        payload['result'] = result.result
    return f"{TOOL_RESULT_START}{_to_json(payload, indent)}{TOOL_RESULT_END}"


def normalize_history(
    messages: Sequence[Message], indent: int = 2
) -> list[Message]:
    """
    Rewrite the function calls and results of a conversation as text.

    A message containing function results is replaced by a 'user'
    message with the results in <tool_call_result> tags. A message
    containing function calls is replaced by an 'assistant' message
    with the calls in <tool_call_json> tags. The other messages are
    kept as they are. The input list and its messages are not
    modified.

    Args:
        messages: the conversation
        indent: indentation of the JSON in the rewritten messages

    Returns:
        a new list of messages
    """
    normalized: list[Message] = []
    for message in messages:
        units: list[str] = []
        role: Role = message.role
        for item in message.contents:
            match item:
                case FunctionResultContent():
                    units.append(_tool_result_unit(item, indent))
                    role = 'user'
                case FunctionCallContent():
                    units.append(_tool_call_unit(item, indent))
                    role = 'assistant'
                case TextContent():
                    pass
        if units:
            normalized.append(Message(role=role, content="\n".join(units)))
        else:
            normalized.append(message)
    return normalized


def prepare_request(
    messages: Sequence[Message],
    options: ChatOptions | None,
    indent: int = 2,
) -> tuple[list[Message], ChatOptions | None]:
    """
    The request sent to the backend in place of the given one.

    When the options list tools, the tool prompt is prepended to a
    copy of the conversation, the tools are removed from a copy of the
    options, and the closing tag of the tool calls block is added to
    its stop sequences.

    Without tools the options pass through as the same object, but
    the conversation is not a plain passthrough: function calls and
    results in it are still rewritten as text, since the backend
    cannot read them. Text-only messages are kept as they are.

    Returns:
        the messages and options to send to the backend
    """
    if options is None or not options.tools:
        return normalize_history(messages, indent), options

    request_messages = [
        compose_tool_prompt(options.tools, indent),
        *clone_messages(messages),
    ]
    options = clone_options(options)
    options.tools = None
    stop_sequences = options.stop_sequences or []
    if TOOL_CALLS_END not in stop_sequences:
        stop_sequences.append(TOOL_CALLS_END)
    options.stop_sequences = stop_sequences

    return normalize_history(request_messages, indent), options


# --- response --------------------------------------------------------


class ToolCallIntent(BaseModel):
    """A tool call as written by the model, not yet validated."""

    name: str | None = None
    arguments: dict[str, Any] | None = None


def coerce_value(value: Any) -> Any:
    """
    Convert a value decoded from JSON to a string, a float or a bool.
    Numbers become floats. Null becomes the empty string, objects and
    arrays become their JSON text. Integers too large for a float
    become their decimal text. Values that were not decoded from JSON
    are returned unchanged.
    """
    match value:
        case bool() | str():
            return value
        case int() | float():
            try:
                return float(value)
            except OverflowError:
                return str(value)
        case None:
            return ""
        case dict() | list():
            return json.dumps(
                value, ensure_ascii=False, separators=(",", ":")
            )
        case _:
            return value


def coerce_arguments(arguments: Mapping[str, Any]) -> dict[str, Any]:
    """Coerce the values of the arguments of a tool call (see
    coerce_value)."""
    return {key: coerce_value(value) for key, value in arguments.items()}


def _preview(text: str, length: int = 120) -> str:
    return text if len(text) <= length else text[:length] + "..."


def parse_tool_call(
    segment: str, logger: LoggerBase = logger
) -> ToolCallIntent | None:
    """
    Parse the text following a <tool_call_json> tag.

    The text is cut at the first closing tag. Only the first JSON value
    is read, and anything after it is ignored. Returns None, after
    logging a warning, if there is no closing tag, if the JSON is not a
    valid object, or if the tool name is missing.
    """
    end = segment.find(CLOSING_TAG_PREFIX)
    if end <= 0:
        logger.warning(
            f"Tool call without closing tag discarded: {_preview(segment)!r}"
        )
        return None

    payload = segment[:end].strip()
    try:
        data, _ = _decoder.raw_decode(payload)
    except (ValueError, RecursionError) as e:
        # oversized integers and deep nesting fail outside JSONDecodeError
        reason = e.msg if isinstance(e, json.JSONDecodeError) else str(e)
        logger.warning(
            f"Tool call with invalid JSON discarded ({reason}): "
            f"{_preview(payload)!r}"
        )
        return None
    if not isinstance(data, dict):
        logger.warning(
            f"Tool call that is not a JSON object discarded: "
            f"{_preview(payload)!r}"
        )
        return None

    # field names are matched regardless of case
    fields = {str(key).lower(): value for key, value in data.items()}
    try:
        intent = ToolCallIntent.model_validate(fields)
    except ValidationError as e:
        logger.warning(
            f"Tool call with invalid fields discarded ({e.error_count()} "
            f"errors): {_preview(payload)!r}"
        )
        return None
    if not intent.name:
        logger.warning(
            f"Tool call without name discarded: {_preview(payload)!r}"
        )
        return None
    return intent


def _new_call_id(length: int, used: set[str]) -> str:
    call_id = uuid.uuid4().hex[:length]
    while call_id in used:
        call_id = uuid.uuid4().hex[:length]
    used.add(call_id)
    return call_id


def _preamble(text: str, start: int) -> str:
    preamble = text[:start]
    block_start = preamble.rfind(TOOL_CALLS_START)
    if block_start >= 0:
        preamble = preamble[:block_start]
    return preamble.strip()


def extract_tool_calls(
    response: ChatResponse,
    *,
    call_id_length: int = 6,
    keep_preamble: bool = False,
    logger: LoggerBase = logger,
) -> ChatResponse:
    """
    Replace the tool calls written in the text of a response with
    FunctionCallContent items.

    If the text contains no <tool_call_json> tag, or if none of the
    tool calls can be parsed, the response is returned unchanged.
    Otherwise, the recovered calls are appended to the first message
    of the response, in the order they were written, each with a new
    call id. If the text was the only content of that message, it is
    removed (or replaced by the text preceding the calls, if
    keep_preamble is set).

    Args:
        response: the response of the backend
        call_id_length: length of the generated call ids
        keep_preamble: keep the text written before the tool calls
        logger: receives the discarded and recovered tool calls

    Returns:
        a response containing the function calls, or the given
        response
    """
    text = response.text
    start = text.find(TOOL_CALL_START)
    if start < 0:
        return response

    used_ids: set[str] = set()
    calls: list[FunctionCallContent] = []
    for segment in text[start:].split(TOOL_CALL_START):
        segment = segment.strip()
        if not segment:
            continue
        intent = parse_tool_call(segment, logger)
        if intent is None:
            continue
        calls.append(
            FunctionCallContent(
                call_id=_new_call_id(call_id_length, used_ids),
                name=intent.name,  # type: ignore (checked in parse)
                arguments=(
                    coerce_arguments(intent.arguments)
                    if intent.arguments is not None
                    else None
                ),
            )
        )

    if not calls:
        logger.warning(
            "No valid tool call in the response, returned as text"
        )
        return response

    first = response.messages[0]
    contents = list(first.contents)
    if len(contents) == 1 and isinstance(contents[0], TextContent):
        preamble = _preamble(text, start) if keep_preamble else ""
        contents = [TextContent(text=preamble)] if preamble else []
    contents.extend(calls)

    logger.info(
        f"Tool calls recovered from the response: "
        f"{', '.join(call.name for call in calls)}"
    )
    return response.model_copy(
        update={
            'messages': [
                first.model_copy(update={'contents': contents}),
                *response.messages[1:],
            ]
        }
    )


# --- chat model ------------------------------------------------------


class PromptBasedFunctionCallingModel(DelegatingChatModel):
    """
    A chat model that gives tool calling capabilities to a backend
    without native support for tool calls.

    The caller's messages and options are never modified: the request
    sent to the backend is built from copies.
    """

    def __init__(
        self,
        inner: BaseChatModel,
        function_calling: FunctionCallingSettings | None = None,
        logger: LoggerBase = logger,
    ):
        """
        Args:
            inner: the chat model of the backend
            function_calling: options of the function calling layer
            logger: a logger object (defaults to console logging)
        """
        super().__init__(inner)
        self.function_calling = function_calling or FunctionCallingSettings()
        self.logger = logger

    def _prepare(
        self, messages: Sequence[Message], options: ChatOptions | None
    ) -> tuple[list[Message], ChatOptions | None]:
        return prepare_request(
            messages, options, self.function_calling.indent
        )

    def _extract(self, response: ChatResponse) -> ChatResponse:
        return extract_tool_calls(
            response,
            call_id_length=self.function_calling.call_id_length,
            keep_preamble=self.function_calling.keep_preamble,
            logger=self.logger,
        )

    def _warn_streaming(self, options: ChatOptions | None) -> None:
        if options is not None and options.tools:
            self.logger.warning(
                "Tool calls are not extracted from streamed responses; "
                "use chat or achat to receive function calls"
            )

    def chat(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        request_messages, request_options = self._prepare(messages, options)
        response = self.inner.chat(request_messages, request_options)
        return self._extract(response)

    async def achat(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        request_messages, request_options = self._prepare(messages, options)
        # cancellation propagates from here: nothing is extracted
        response = await self.inner.achat(request_messages, request_options)
        return self._extract(response)

    def stream(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> Iterator[str]:
        self._warn_streaming(options)
        request_messages, request_options = self._prepare(messages, options)
        yield from self.inner.stream(request_messages, request_options)

    async def astream(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> AsyncIterator[str]:
        self._warn_streaming(options)
        request_messages, request_options = self._prepare(messages, options)
        async for chunk in self.inner.astream(
            request_messages, request_options
        ):
            yield chunk


def use_prompt_based_function_calling(
    model: BaseChatModel,
    function_calling: FunctionCallingSettings | None = None,
    logger: LoggerBase = logger,
) -> PromptBasedFunctionCallingModel:
    """Wrap a chat model with the prompt-based function calling."""
    return PromptBasedFunctionCallingModel(model, function_calling, logger)
