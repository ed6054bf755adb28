""" LangChain API interface to language model backends

This package connects the backend specification written in the toml
configuration file to a LangChain chat model, and adapts that model
to the chat model interface of the package, so that it can be wrapped
by the prompt-based function calling. The connection takes place
through objects containing configuration parameters, based on the
Pydantic Settings library, that may be created in code or left empty
to be loaded from config.toml.
"""

# pyright: reportUnusedImport=false
# flake8: noqa

from .adapter import LangChainChatModel, create_chat_model
