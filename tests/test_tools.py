"""Test tool descriptors"""

import unittest
from typing import Annotated

from pydantic import Field, ValidationError

from lmfc.language_models.tools import ToolDescriptor, create_tool


def get_price(
    count: Annotated[int, Field(description="pairs of socks")],
    discount: float = 0.0,
) -> float:
    """Computes the price of socks, including tax."""
    return round(9.99 * count * (1 - discount), 2)


class Cart:
    def __init__(self):
        self.pairs = 0

    def add_socks(self, num_pairs: int) -> int:
        self.pairs += num_pairs
        return self.pairs


class TestToolDescriptor(unittest.TestCase):

    def test_json_schema(self):
        tool = ToolDescriptor(name="get_cart", description="The cart")
        self.assertEqual(
            tool.json_schema(),
            {
                'name': "get_cart",
                'description': "The cart",
                'parameters': {'type': "object", 'properties': {}},
            },
        )

    def test_no_description(self):
        tool = ToolDescriptor(name="get_cart")
        self.assertNotIn('description', tool.json_schema())

    def test_empty_name(self):
        with self.assertRaises(ValidationError):
            ToolDescriptor(name="")

    def test_invoke_without_function(self):
        with self.assertRaises(ValueError):
            ToolDescriptor(name="get_cart").invoke({})

    def test_function_not_serialized(self):
        tool = ToolDescriptor(name="get_cart", function=lambda: 0)
        self.assertNotIn('function', tool.model_dump())


class TestCreateTool(unittest.TestCase):

    def test_schema_from_function(self):
        tool = create_tool(get_price)
        self.assertEqual(tool.name, "get_price")
        self.assertEqual(
            tool.description, "Computes the price of socks, including tax."
        )
        parameters = tool.parameters
        self.assertEqual(parameters['type'], "object")
        self.assertEqual(
            parameters['properties']['count'],
            {'type': "integer", 'description': "pairs of socks"},
        )
        self.assertEqual(parameters['properties']['discount']['default'], 0.0)
        self.assertEqual(parameters['required'], ["count"])
        self.assertNotIn('title', parameters)

    def test_invoke_coerces_floats(self):
        # numbers recovered from a completion are floats
        tool = create_tool(get_price)
        self.assertEqual(tool.invoke({'count': 2.0}), 19.98)

    def test_invoke_invalid_arguments(self):
        tool = create_tool(get_price)
        with self.assertRaises(ValidationError):
            tool.invoke({'count': "many"})
        with self.assertRaises(ValidationError):
            tool.invoke({})

    def test_bound_method(self):
        cart = Cart()
        tool = create_tool(
            cart.add_socks, name="addSocksToCart", description="Add socks"
        )
        self.assertEqual(tool.name, "addSocksToCart")
        self.assertEqual(list(tool.parameters['properties']), ["num_pairs"])
        self.assertEqual(tool.invoke({'num_pairs': 3.0}), 3)
        self.assertEqual(cart.pairs, 3)


if __name__ == "__main__":
    unittest.main()
