"""
Abstract base class for language model backends, and the base class of
the chat models that wrap another chat model.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterator, AsyncIterator, Sequence
import asyncio

from lmfc.config.config import LanguageModelSettings
from lmfc.language_models.messages import ChatOptions, ChatResponse, Message


class BaseChatModel(ABC):
    """Abstract base class for chat models."""

    def __init__(self, settings: LanguageModelSettings | None = None):
        self.settings = settings

    @abstractmethod
    def chat(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        """
        Get the next message from the model synchronously.

        Args:
            messages: The conversation history.
            options: Optional request options, such as the tools the
                model can call and the stop sequences.

        Returns:
            The model's response (which may contain text content or
            tool calls).
        """
        pass

    async def achat(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        """
        Get the next message from the model asynchronously.

        Default implementation delegates to the synchronous chat method
        in a thread pool.
        """
        return await asyncio.to_thread(self.chat, messages, options)

    def stream(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> Iterator[str]:
        """
        Stream the text of the model's response synchronously.

        Default implementation yields the full response text at once.
        """
        response = self.chat(messages, options)
        if response.text:
            yield response.text

    async def astream(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream the text of the model's response asynchronously.

        Default implementation yields the full response text at once.
        """
        response = await self.achat(messages, options)
        if response.text:
            yield response.text


class DelegatingChatModel(BaseChatModel):
    """
    A chat model that forwards all calls to an inner chat model.
    Subclasses override the calls whose request or response they
    transform.
    """

    def __init__(self, inner: BaseChatModel):
        super().__init__(inner.settings)
        self.inner = inner

    def chat(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        return self.inner.chat(messages, options)

    async def achat(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> ChatResponse:
        return await self.inner.achat(messages, options)

    def stream(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> Iterator[str]:
        yield from self.inner.stream(messages, options)

    async def astream(
        self,
        messages: Sequence[Message],
        options: ChatOptions | None = None,
    ) -> AsyncIterator[str]:
        async for chunk in self.inner.astream(messages, options):
            yield chunk
