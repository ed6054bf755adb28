# pyright: reportUnusedImport=false
# flake8: noqa

from .messages import (
    ChatOptions,
    ChatResponse,
    FunctionCallContent,
    FunctionResultContent,
    Message,
    TextContent,
)
from .tools import ToolDescriptor, create_tool
from .base import BaseChatModel, DelegatingChatModel
from .function_calling import (
    PromptBasedFunctionCallingModel,
    use_prompt_based_function_calling,
)
from .agent import Agent
