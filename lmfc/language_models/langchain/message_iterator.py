"""
Iterators of completions fed to a fake language model.

The Debug model source replays these completions in place of a real
backend, so that tool prompts and the parsing of tool calls can be
exercised without a model endpoint.
"""

from collections.abc import Iterator, Sequence


class MessageIterator:
    """
    An infinite iterator of messages "{prefix} {counter}", where the
    counter starts at 1.
    """

    def __init__(self, prefix: str = "Message") -> None:
        self.prefix = prefix
        self.counter = 1

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        message = f"{self.prefix} {self.counter}"
        self.counter += 1
        return message


class ScriptedMessageIterator:
    """
    An infinite iterator replaying a sequence of messages in order.
    After the last message, the last message is repeated.
    """

    def __init__(self, messages: Sequence[str]) -> None:
        if not messages:
            raise ValueError("At least one message is required")
        self.messages = list(messages)
        self.counter = 0

    def __iter__(self) -> Iterator[str]:
        return self

    def __next__(self) -> str:
        message = self.messages[min(self.counter, len(self.messages) - 1)]
        self.counter += 1
        return message


def yield_message(prefix: str = "Message") -> MessageIterator:
    """
    An iterator of sequential messages.

    Example:
        >>> iterator = yield_message("Alert")
        >>> next(iterator)
        'Alert 1'
        >>> next(iterator)
        'Alert 2'
    """
    return MessageIterator(prefix)


def yield_constant_message(message: str) -> ScriptedMessageIterator:
    """An iterator returning the same message indefinitely."""
    return ScriptedMessageIterator([message])


def yield_script(messages: Sequence[str]) -> ScriptedMessageIterator:
    """
    An iterator replaying the given messages, then repeating the last.

    Example:
        >>> iterator = yield_script([
        ...     '<tool_calls><tool_call_json>{"name": "get_price", '
        ...     '"arguments": {"count": 3}}</tool_call_json>',
        ...     "Three pairs cost 35.96.",
        ... ])
        >>> next(iterator)[:12]
        '<tool_calls>'
        >>> next(iterator)
        'Three pairs cost 35.96.'
    """
    return ScriptedMessageIterator(messages)
