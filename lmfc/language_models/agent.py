"""
Agent abstraction that combines a model, a system prompt, and tools.
"""

import inspect
from collections.abc import Sequence
from typing import Any

from lmfc.language_models.base import BaseChatModel
from lmfc.language_models.messages import (
    ChatOptions,
    ChatResponse,
    FunctionCallContent,
    FunctionResultContent,
    Message,
)
from lmfc.language_models.tools import ToolDescriptor
from lmfc.utils.logging import LoggerBase, get_logger

logger: LoggerBase = get_logger(__name__)


class Agent:
    """
    An agent wraps a language model with a system prompt and tools.

    It keeps the conversation history and runs the tool execution
    loop: when the model requests tool calls, the tools are invoked
    and their results are sent back to the model, until the model
    answers with text.

    Example:
        ```python
        model = use_prompt_based_function_calling(backend)
        agent = Agent(model, system_prompt="You sell socks.",
                      tools=[create_tool(get_price)])
        print(agent.invoke("How much for 3 pairs?"))
        ```
    """

    def __init__(
        self,
        model: BaseChatModel,
        system_prompt: str | None = None,
        tools: Sequence[ToolDescriptor] | None = None,
        name: str | None = None,
        max_iterations: int = 10,
        logger: LoggerBase = logger,
    ):
        self.model = model
        self.system_prompt = system_prompt
        self.tools = list(tools or [])
        self.name = name
        self.max_iterations = max_iterations
        self.logger = logger
        self.history: list[Message] = []
        if system_prompt:
            self.history.append(Message(role='system', content=system_prompt))

    def get_name(self) -> str:
        """Return the name of the agent."""
        return self.name or "Agent"

    def _options(self) -> ChatOptions:
        return ChatOptions(tools=self.tools or None)

    def _find_tool(self, name: str) -> ToolDescriptor | None:
        for tool in self.tools:
            if tool.name == name:
                return tool
        return None

    def _record(self, response: ChatResponse) -> list[FunctionCallContent]:
        self.history.extend(response.messages)
        return response.function_calls

    def _call_tool(self, call: FunctionCallContent) -> tuple[Any, bool]:
        # Returns the result of the call and whether it is awaitable
        tool = self._find_tool(call.name)
        if tool is None:
            self.logger.warning(f"Call to unknown tool '{call.name}'")
            return f"Error: unknown tool '{call.name}'", False
        try:
            result = tool.invoke(call.arguments)
        except Exception as e:
            self.logger.error(f"Tool '{call.name}' failed: {e}")
            return f"Error: {e}", False
        return result, inspect.isawaitable(result)

    def _result_message(
        self, results: list[FunctionResultContent]
    ) -> Message:
        return Message(role='tool', contents=results)

    def invoke(self, input_text: str) -> str:
        """
        Send a user message and run the tool loop until the model
        answers.

        Args:
            input_text: the user message

        Returns:
            The text of the model's answer.

        Raises:
            RuntimeError: if the model keeps calling tools after
                max_iterations requests
        """
        self.history.append(Message(role='user', content=input_text))
        for _ in range(self.max_iterations):
            response = self.model.chat(self.history, self._options())
            calls = self._record(response)
            if not calls:
                return response.text

            results: list[FunctionResultContent] = []
            for call in calls:
                result, awaitable = self._call_tool(call)
                if awaitable:
                    result.close()  # type: ignore (coroutine)
                    result = (
                        f"Error: tool '{call.name}' is asynchronous, "
                        "use ainvoke"
                    )
                results.append(
                    FunctionResultContent(call_id=call.call_id, result=result)
                )
            self.history.append(self._result_message(results))

        raise RuntimeError(
            f"{self.get_name()}: no answer after "
            f"{self.max_iterations} requests to the model"
        )

    async def ainvoke(self, input_text: str) -> str:
        """
        Asynchronous version of invoke. Asynchronous tools are awaited.
        """
        self.history.append(Message(role='user', content=input_text))
        for _ in range(self.max_iterations):
            response = await self.model.achat(self.history, self._options())
            calls = self._record(response)
            if not calls:
                return response.text

            results: list[FunctionResultContent] = []
            for call in calls:
                result, awaitable = self._call_tool(call)
                if awaitable:
                    try:
                        result = await result
                    except Exception as e:
                        self.logger.error(f"Tool '{call.name}' failed: {e}")
                        result = f"Error: {e}"
                results.append(
                    FunctionResultContent(call_id=call.call_id, result=result)
                )
            self.history.append(self._result_message(results))

        raise RuntimeError(
            f"{self.get_name()}: no answer after "
            f"{self.max_iterations} requests to the model"
        )
