"""
Descriptors of the tools a language model may call.

A tool is identified by its name and described to the model by the
JSON schema of its parameters. The descriptor also holds the function
that is called when the model requests the tool.

The `create_tool` function builds the descriptor from a Python
function, reading the name, the docstring and the annotated signature.

**Example**:

    ```python
    from typing import Annotated
    from pydantic import Field
    from lmfc.language_models.tools import create_tool

    def get_price(
        count: Annotated[int, Field(description="pairs of socks")],
    ) -> float:
        "Computes the price of socks, including tax."
        return 9.99 * count * 1.2

    tool = create_tool(get_price)
    tool.json_schema()
    # {'name': 'get_price',
    #  'description': 'Computes the price of socks, including tax.',
    #  'parameters': {'type': 'object',
    #                 'properties': {'count': {'type': 'integer',
    #                                          'description': 'pairs of socks'}},
    #                 'required': ['count']}}
    tool.invoke({'count': 3.0})  # arguments validated by pydantic
    ```
"""

import inspect
from collections.abc import Callable, Mapping
from typing import Any, get_type_hints

from pydantic import BaseModel, ConfigDict, Field, create_model, validate_call


def _empty_schema() -> dict[str, Any]:
    return {'type': "object", 'properties': {}}


class ToolDescriptor(BaseModel):
    """Groups the properties that define a tool.

    Attributes:
        name: the name the model uses to call the tool
        description: what the tool does, for the model
        parameters: JSON schema of the tool arguments
        function: the callable invoked with the arguments
    """

    name: str = Field(min_length=1)
    description: str | None = None
    parameters: dict[str, Any] = Field(default_factory=_empty_schema)
    function: Callable[..., Any] | None = Field(
        default=None, exclude=True, repr=False
    )

    model_config = ConfigDict(frozen=True)

    def json_schema(self) -> dict[str, Any]:
        """The description of the tool given to the model."""
        schema: dict[str, Any] = {'name': self.name}
        if self.description:
            schema['description'] = self.description
        schema['parameters'] = self.parameters
        return schema

    def invoke(self, arguments: Mapping[str, Any] | None = None) -> Any:
        """Call the tool function with the given arguments.

        Raises:
            ValueError: if the descriptor has no function
            ValidationError: if the arguments are rejected by a
                function created with `create_tool`
        """
        if self.function is None:
            raise ValueError(f"Tool '{self.name}' has no function")
        return self.function(**(arguments or {}))


def _parameters_schema(func: Callable[..., Any], name: str) -> dict[str, Any]:
    hints = get_type_hints(func, include_extras=True)
    fields: dict[str, Any] = {}
    for param in inspect.signature(func).parameters.values():
        if param.kind in (
            inspect.Parameter.VAR_POSITIONAL,
            inspect.Parameter.VAR_KEYWORD,
        ):
            continue
        annotation = hints.get(param.name, Any)
        default = (
            param.default
            if param.default is not inspect.Parameter.empty
            else ...
        )
        fields[param.name] = (annotation, default)

    arguments_model: type[BaseModel] = create_model(
        f"{name}_arguments", **fields
    )
    schema = arguments_model.model_json_schema()
    schema.pop('title', None)
    for prop in schema.get('properties', {}).values():
        prop.pop('title', None)
    return schema


def create_tool(
    func: Callable[..., Any],
    *,
    name: str | None = None,
    description: str | None = None,
) -> ToolDescriptor:
    """
    Create a tool descriptor from a function or a bound method.

    Args:
        func: the function implementing the tool
        name: the tool name (defaults to the function name)
        description: the tool description (defaults to the docstring)

    Returns:
        a ToolDescriptor whose function validates the arguments
        against the signature before calling func.
    """
    tool_name = name or func.__name__
    return ToolDescriptor(
        name=tool_name,
        description=description or inspect.getdoc(func),
        parameters=_parameters_schema(func, tool_name),
        function=validate_call(func),
    )
