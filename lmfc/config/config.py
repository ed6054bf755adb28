"""
Read and write configuration file.

This file also contains the definitions of the model providers
supported in the package, and the options of the function calling
layer.
"""

from pathlib import Path
from typing import Any, Literal, Self

from pydantic import (
    BaseModel,
    Field,
    field_validator,
    model_validator,
)
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

# Supported model providers. These must also be handled in the
# model factory of the language framework (langchain/models.py)
ModelSource = Literal['OpenAI', 'Ollama', 'Debug']

# Values admitted in provider_params
ProviderParam = str | int | float | bool

DEFAULT_CONFIG_FILE = "config.toml"
ENV_PREFIX = "LMFC_"


class LanguageModelSettings(BaseModel):
    """
    Specification of the backend language model.

    Attributes:
        model: model specification, 'provider/model'
        temperature: float between 0.0 and 2.0
        max_tokens: max number of generated tokens
        max_retries: max number retries attempts
        timeout: timeout when waiting for response
        provider_params: provider-specific parameters
    """

    model: str = Field(
        description="Model specification in the form "
        + "'model_provider/model' (e.g., 'Ollama/llama3.1')"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Controls randomness in model responses (0.0-2.0)",
    )
    max_tokens: int | None = Field(
        default=None,
        ge=1,
        description="Maximum number of tokens to generate",
    )
    max_retries: int = Field(
        default=2,
        ge=0,
        description="Maximum number of retry attempts",
    )
    timeout: float | None = Field(
        default=None, gt=0, description="Request timeout in seconds"
    )
    provider_params: dict[str, ProviderParam] = Field(
        default_factory=dict,
        description="Provider-specific parameters (e.g., base_url)",
    )

    model_config = SettingsConfigDict(frozen=True, extra='forbid')

    def __hash__(self) -> int:
        # provider_params is a dict, hashed as a sorted tuple
        return hash(
            (
                self.model,
                self.temperature,
                self.max_tokens,
                self.max_retries,
                self.timeout,
                tuple(sorted(self.provider_params.items())),
            )
        )

    def get_model_source(self) -> ModelSource:
        return self.model.split('/')[0]  # type: ignore

    def get_model_name(self) -> str:
        return self.model.split('/', 1)[1]

    @field_validator('model', mode='after')
    @classmethod
    def validate_model_spec(cls, spec: str) -> str:
        cleaned_spec = spec.strip()
        if not cleaned_spec:
            raise ValueError("Model specification is empty")
        if '\n' in cleaned_spec or '\r' in cleaned_spec:
            raise ValueError(
                "Model specification cannot contain newlines or carriage"
                + " returns."
            )
        # Ollama model names may contain a namespace, as in
        # 'Ollama/library/llama3.1', so only the first '/' separates
        tokens = cleaned_spec.split('/', 1)
        if len(tokens) != 2 or not tokens[1].strip():
            raise ValueError(
                "Model specification must contain the model provider and "
                + "the model name separated by '/'.",
            )
        source = tokens[0].strip()
        if source not in ModelSource.__args__:
            raise ValueError(
                f"Invalid model provider: '{source}'. "
                + f"Must be one of {ModelSource.__args__}."
            )
        return source + '/' + tokens[1].strip()

    @model_validator(mode='after')
    def validate_provider_params(self) -> Self:
        """Validate provider-specific parameters based on the source."""

        ALLOWED_PARAMS = {
            'OpenAI': {
                'base_url',
                'api_key',
                'frequency_penalty',
                'presence_penalty',
                'top_p',
                'seed',
            },
            'Ollama': {
                'base_url',
                'top_p',
                'top_k',
                'num_ctx',
                'seed',
                'keep_alive',
            },
            'Debug': {'message'},
        }

        source: ModelSource = self.get_model_source()
        allowed = ALLOWED_PARAMS[source]
        invalid_params = set(self.provider_params.keys()) - allowed
        if invalid_params:
            raise ValueError(
                f"Invalid provider_params for {source}: "
                + f"{sorted(invalid_params)}. Allowed: {sorted(allowed)}"
            )
        return self


class FunctionCallingSettings(BaseModel):
    """
    Options of the prompt-based function calling layer.

    Attributes:
        indent: indentation of the JSON written in the tool prompt
            and in the rewritten history (0 for compact JSON)
        call_id_length: length of the identifiers generated for the
            recovered tool calls
        keep_preamble: keep the text the model wrote before the tool
            calls in the response
    """

    indent: int = Field(default=2, ge=0, le=8)
    call_id_length: int = Field(default=6, ge=4, le=32)
    keep_preamble: bool = False

    model_config = SettingsConfigDict(frozen=True, extra='forbid')


class Settings(BaseSettings):
    """
    A pydantic settings object containing the fields with the
    configuration information.

    Settings are read from the configuration file in TOML format,
    and from environment variables prefixed by LMFC_ (nested fields
    separated by a double underscore, as in
    LMFC_BACKEND__MODEL=OpenAI/gpt-4o-mini).

    Attributes:
        backend: the language model the function calling layer wraps
        function_calling: options of the function calling layer
    """

    backend: LanguageModelSettings = Field(
        default_factory=lambda: LanguageModelSettings(
            model="Ollama/llama3.1",
        ),
        description="Backend language model without native tool calls",
    )
    function_calling: FunctionCallingSettings = Field(
        default_factory=FunctionCallingSettings,
        description="Options of the prompt-based function calling",
    )

    model_config = SettingsConfigDict(
        toml_file=DEFAULT_CONFIG_FILE,
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        frozen=True,
        extra='ignore',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Arguments first, then config.toml, then environment."""
        return (
            init_settings,
            TomlConfigSettingsSource(settings_cls),
            env_settings,
        )


def serialize_settings(sets: BaseSettings) -> str:
    """Transform the settings into a string in TOML format.

    Args:
        sets: The settings object to serialize

    Returns:
        TOML formatted string representation of settings
    """
    import tomlkit

    doc = tomlkit.document()
    doc.add(tomlkit.comment("Configuration file"))
    doc.add(tomlkit.nl())

    data: dict[str, Any] = sets.model_dump()
    for key, value in data.items():
        if isinstance(value, dict):
            tbl = tomlkit.table()
            for kkey, vvalue in value.items():  # type: ignore
                # None values can't be serialized to TOML
                if vvalue is not None:
                    tbl[kkey] = vvalue
            doc[key] = tbl
        elif value is not None:
            doc[key] = value

    return str(tomlkit.dumps(doc))  # type: ignore


def export_settings(
    settings: BaseSettings, file_path: str | Path | None = None
) -> None:
    """Save settings to file in TOML format.

    Args:
        settings: A settings object to save
        file_path: The settings file path (defaults to config.toml)

    Raises:
        OSError: If file cannot be written
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with file_path.open("w", encoding="utf-8") as f:
        f.write(serialize_settings(settings))


def create_default_config_file(
    file_path: str | Path | None = None,
) -> None:
    """Create a settings file with the default values.

    Args:
        file_path: Target file path (defaults to config.toml)

    Example:
        ```python
        # Creates config.toml in base folder with default values
        create_default_config_file()
        ```
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)

    if file_path.exists():
        # otherwise, it would be read in by Settings()
        file_path.unlink()

    export_settings(Settings(), file_path)


def load_settings(file_path: str | Path | None = None) -> Settings:
    """Load settings from TOML file.

    Args:
        file_path: Path to settings file (defaults to config.toml)

    Returns:
        Loaded settings object

    Raises:
        FileNotFoundError: If settings file doesn't exist
        ValueError: If settings file is invalid
    """
    file_path = Path(file_path or DEFAULT_CONFIG_FILE)

    if not file_path.exists():
        raise FileNotFoundError(f"Settings file not found: {file_path}")

    # A settings class reading from the given file
    class FileSettings(Settings):
        model_config = SettingsConfigDict(
            toml_file=str(file_path),
            env_prefix=ENV_PREFIX,
            env_nested_delimiter="__",
            frozen=True,
            extra='ignore',
        )

    try:
        return FileSettings()
    except Exception as e:
        raise ValueError(
            f"Failed to load settings from {file_path}: "
            + format_pydantic_error_message(str(e))
        ) from e


def format_pydantic_error_message(error_message: str) -> str:
    """Filter out the links to the pydantic documentation from
    pydantic error messages."""
    lines = error_message.split('\n')
    return '\n'.join(
        line
        for line in lines
        if "For further information visit" not in line
    )
