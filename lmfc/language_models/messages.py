"""
Generic data structures for language model interactions.

A message carries a role and an ordered list of content items. The
content items form a tagged union over the `type` field: plain text,
a function call requested by the model, and the result of a function
call returned to the model.

**Example**:

    ```python
    from lmfc.language_models.messages import (
        Message,
        FunctionCallContent,
        FunctionResultContent,
    )

    history = [
        Message(role='user', content="Add three pairs of socks"),
        Message(role='assistant', contents=[
            FunctionCallContent(call_id="a1b2c3", name="add_socks_to_cart",
                                arguments={'num_pairs': 3.0}),
        ]),
        Message(role='tool', contents=[
            FunctionResultContent(call_id="a1b2c3", result={'pairs': 3}),
        ]),
    ]
    ```

New content variants are added by extending the ContentItem union.
"""

from collections.abc import Sequence
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .tools import ToolDescriptor

Role = Literal['system', 'user', 'assistant', 'tool']


class TextContent(BaseModel):
    """Plain text."""

    type: Literal['text'] = 'text'
    text: str

    model_config = ConfigDict(frozen=True)


class FunctionCallContent(BaseModel):
    """A request of the model to call a tool."""

    type: Literal['function_call'] = 'function_call'
    call_id: str
    name: str = Field(min_length=1)
    arguments: dict[str, Any] | None = None

    model_config = ConfigDict(frozen=True)


class FunctionResultContent(BaseModel):
    """The result of a tool call, to be sent back to the model."""

    type: Literal['function_result'] = 'function_result'
    call_id: str
    result: Any = None

    model_config = ConfigDict(frozen=True)


ContentItem = Annotated[
    TextContent | FunctionCallContent | FunctionResultContent,
    Field(discriminator='type'),
]


class Message(BaseModel):
    """Represents a message in a chat conversation.

    A message with only text may be created with the `content`
    shortcut, as in `Message(role='user', content="Hello")`.
    """

    role: Role
    contents: list[ContentItem] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def _content_shortcut(cls, data: Any) -> Any:
        if isinstance(data, dict) and 'content' in data:
            data = dict(data)  # type: ignore
            content = data.pop('content')
            if content is not None:
                data['contents'] = [
                    *data.get('contents', []),
                    TextContent(text=str(content)),
                ]
        return data

    @property
    def text(self) -> str:
        """The concatenated text items of the message."""
        return "".join(
            item.text
            for item in self.contents
            if isinstance(item, TextContent)
        )


class ChatOptions(BaseModel):
    """Options of a chat request.

    Attributes:
        tools: the tools the model may call
        stop_sequences: sequences that end the generation
    """

    tools: list[ToolDescriptor] | None = None
    stop_sequences: list[str] | None = None


class ChatResponse(BaseModel):
    """The messages produced by the model in response to a request."""

    messages: list[Message] = Field(default_factory=list)
    finish_reason: str | None = None

    @property
    def text(self) -> str:
        return "".join(message.text for message in self.messages)

    @property
    def function_calls(self) -> list[FunctionCallContent]:
        return [
            item
            for message in self.messages
            for item in message.contents
            if isinstance(item, FunctionCallContent)
        ]


def clone_message(message: Message) -> Message:
    """A copy of the message with its own list of content items. The
    items themselves are immutable and are shared."""
    return message.model_copy(update={'contents': list(message.contents)})


def clone_options(options: ChatOptions) -> ChatOptions:
    """A copy of the options with their own tool and stop sequence
    lists."""
    return options.model_copy(
        update={
            'tools': (
                list(options.tools)
                if options.tools is not None
                else None
            ),
            'stop_sequences': (
                list(options.stop_sequences)
                if options.stop_sequences is not None
                else None
            ),
        }
    )


def clone_messages(messages: Sequence[Message]) -> list[Message]:
    return [clone_message(message) for message in messages]
