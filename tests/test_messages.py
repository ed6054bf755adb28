"""Test messages module"""

import unittest

from pydantic import TypeAdapter, ValidationError

from lmfc.language_models.messages import (
    ChatOptions,
    ChatResponse,
    ContentItem,
    FunctionCallContent,
    FunctionResultContent,
    Message,
    TextContent,
    clone_message,
    clone_messages,
    clone_options,
)
from lmfc.language_models.tools import ToolDescriptor


class TestContentItems(unittest.TestCase):

    def test_discriminator(self):
        adapter = TypeAdapter(ContentItem)
        item = adapter.validate_python(
            {'type': "function_call", 'call_id': "a1", 'name': "get_cart"}
        )
        self.assertIsInstance(item, FunctionCallContent)
        item = adapter.validate_python(
            {'type': "function_result", 'call_id': "a1", 'result': 3}
        )
        self.assertIsInstance(item, FunctionResultContent)
        with self.assertRaises(ValidationError):
            adapter.validate_python({'type': "image", 'url': "x"})

    def test_empty_name(self):
        with self.assertRaises(ValidationError):
            FunctionCallContent(call_id="a1", name="")

    def test_frozen(self):
        item = TextContent(text="hello")
        with self.assertRaises(ValidationError):
            item.text = "bye"  # type: ignore


class TestMessage(unittest.TestCase):

    def test_content_shortcut(self):
        message = Message(role='user', content="Hello")
        self.assertEqual(message.contents, [TextContent(text="Hello")])
        self.assertEqual(message.text, "Hello")

    def test_text_of_items(self):
        message = Message(
            role='assistant',
            contents=[
                TextContent(text="Let me check. "),
                FunctionCallContent(call_id="a1", name="get_cart"),
                TextContent(text="Done."),
            ],
        )
        self.assertEqual(message.text, "Let me check. Done.")

    def test_invalid_role(self):
        with self.assertRaises(ValidationError):
            Message(role='robot', content="Hello")  # type: ignore

    def test_json_round_trip(self):
        message = Message(
            role='tool',
            contents=[FunctionResultContent(call_id="a1", result={'n': 1})],
        )
        self.assertEqual(
            Message.model_validate_json(message.model_dump_json()), message
        )


class TestChatResponse(unittest.TestCase):

    def test_function_calls(self):
        response = ChatResponse(
            messages=[
                Message(
                    role='assistant',
                    contents=[
                        FunctionCallContent(call_id="a", name="get_price"),
                        FunctionCallContent(call_id="b", name="get_cart"),
                    ],
                )
            ]
        )
        self.assertEqual(
            [c.call_id for c in response.function_calls], ["a", "b"]
        )
        self.assertEqual(response.text, "")

    def test_empty(self):
        response = ChatResponse()
        self.assertEqual(response.text, "")
        self.assertEqual(response.function_calls, [])


class TestClone(unittest.TestCase):

    def test_clone_message(self):
        message = Message(role='user', content="Hello")
        clone = clone_message(message)
        self.assertEqual(clone, message)
        self.assertIsNot(clone.contents, message.contents)
        clone.contents.append(TextContent(text=" there"))
        self.assertEqual(message.text, "Hello")

    def test_clone_messages(self):
        messages = [Message(role='user', content="Hello")]
        clones = clone_messages(messages)
        self.assertIsNot(clones[0], messages[0])

    def test_clone_options(self):
        options = ChatOptions(
            tools=[ToolDescriptor(name="get_cart")], stop_sequences=["X"]
        )
        clone = clone_options(options)
        clone.tools = None
        clone.stop_sequences.append("Y")  # type: ignore
        self.assertEqual(len(options.tools), 1)  # type: ignore
        self.assertEqual(options.stop_sequences, ["X"])

    def test_clone_empty_options(self):
        clone = clone_options(ChatOptions())
        self.assertIsNone(clone.tools)
        self.assertIsNone(clone.stop_sequences)


if __name__ == "__main__":
    unittest.main()
