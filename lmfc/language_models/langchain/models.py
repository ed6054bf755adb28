"""
This module implements creation of LangChain chat model objects
wrapping the message exchange with the backend language model. The
model objects are memoized in the global repository
`langchain_models`, keyed by the LanguageModelSettings object that
specifies them.

The settings are given as a LanguageModelSettings object, or as the
arguments of the create_model_from_spec function. A default is the
`backend` member of the Settings object read from config.toml.

Examples:

```python
from lmfc.language_models.langchain.models import (
    create_model_from_spec,
    create_model_from_settings,
    langchain_models,
)
from lmfc.config.config import LanguageModelSettings, Settings

# Method 1: Using a LanguageModelSettings object
settings = LanguageModelSettings(
    model="Ollama/llama3.1",
    temperature=0.2,
    provider_params={'base_url': "http://localhost:11434"},
)
model = create_model_from_settings(settings)

# Method 2: Using create_model_from_spec function
model = create_model_from_spec(model="OpenAI/gpt-4o-mini")

# Method 3: Using the configuration file
model = create_model_from_settings(Settings().backend)
```

A model object may also be registered directly for a specification,
as in `langchain_models[settings] = model`, e.g. to replay scripted
completions with a fake model.

Behaviour:
    Raises exception from LangChain and from itself

Note:
    Support for new model sources should be added here by extending
    the match ... case statement in _create_model_instance, and in the
    ModelSource definition of the config module.
"""

from typing import Any

from langchain_core.language_models.chat_models import BaseChatModel

from ..lazy_dict import LazyLoadingDict
from lmfc.config.config import (
    LanguageModelSettings,
    ModelSource,
    ProviderParam,
)


def _create_model_instance(
    model: LanguageModelSettings,
) -> BaseChatModel:
    """
    Factory function to create LangChain models while checking
    permissible sources.
    """
    model_source: ModelSource = model.get_model_source()
    model_name: str = model.get_model_name()
    kwargs: dict[str, Any]
    match model_source:
        case "OpenAI":
            try:
                from langchain_openai.chat_models import ChatOpenAI
            except ImportError as e:
                raise ImportError(
                    "OpenAI models require the 'langchain-openai'"
                    " package. Install it with: pip install "
                    "langchain-openai"
                ) from e

            kwargs = {
                "model": model_name,
                "temperature": model.temperature,
                "max_retries": model.max_retries,
                "use_responses_api": False,
            }
            if model.max_tokens is not None:
                kwargs["max_tokens"] = model.max_tokens
            if model.timeout is not None:
                kwargs["timeout"] = model.timeout

            # base_url selects any OpenAI-compatible server
            kwargs.update(model.provider_params)

            return ChatOpenAI(**kwargs)

        case "Ollama":
            try:
                from langchain_ollama import ChatOllama
            except ImportError as e:
                raise ImportError(
                    "Ollama models require the 'langchain-ollama'"
                    " package. Install it with: pip install "
                    "langchain-ollama"
                ) from e

            kwargs = {
                "model": model_name,
                "temperature": model.temperature,
            }
            if model.max_tokens is not None:
                kwargs["num_predict"] = model.max_tokens
            if model.timeout is not None:
                kwargs["client_kwargs"] = {"timeout": model.timeout}

            kwargs.update(model.provider_params)

            return ChatOllama(**kwargs)

        case "Debug":
            from langchain_core.language_models.fake_chat_models import (
                GenericFakeChatModel,
            )
            from .message_iterator import (
                yield_message,
                yield_constant_message,
            )

            if "message" in model.provider_params:
                return GenericFakeChatModel(
                    name="LangChain fake messages",
                    messages=yield_constant_message(
                        str(model.provider_params["message"])
                    ),
                )
            return GenericFakeChatModel(
                name="LangChain fake chat",
                messages=yield_message(),
            )

        case _:
            raise ValueError(
                f"Unreachable code reached: invalid source {model_source}"
            )


# Public interface----------------------------------------------
langchain_models: LazyLoadingDict[LanguageModelSettings, BaseChatModel] = \
    LazyLoadingDict(_create_model_instance)


def create_model_from_spec(
    model: str,
    *,
    temperature: float = 0.1,
    max_tokens: int | None = None,
    max_retries: int = 2,
    timeout: float | None = None,
    provider_params: dict[str, ProviderParam] | None = None,
) -> BaseChatModel:
    """
    Create LangChain model from specifications.

    Args:
        model: the model in the form source/model, such as
            'Ollama/llama3.1'

    Returns:
        a LangChain model object.

    Raises ValueError, TypeError, ValidationError

    Example:
        ```python
        model = create_model_from_spec("Ollama/llama3.1")
        ```
    """
    spec = LanguageModelSettings(
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        max_retries=max_retries,
        timeout=timeout,
        provider_params=provider_params or {},
    )
    return langchain_models[spec]


def create_model_from_settings(
    settings: LanguageModelSettings,
) -> BaseChatModel:
    """
    Create LangChain model from a LanguageModelSettings object.

    Args:
        settings: a LanguageModelSettings object containing model
            configuration.

    Returns:
        a LangChain model object.

    Raises ValueError, TypeError, ValidationError
    """
    return langchain_models[settings]
