"""
The utility class `LazyLoadingDict` stores objects produced by a
factory function, memoized by the key they were created from.

It is used to keep one backend model object per model specification:
the key is a frozen, hashable pydantic settings object, and the
factory creates the model the first time the key is looked up.
Invalid keys give rise to runtime errors in the factory function.

Example:
    ```python
    from lmfc.config.config import LanguageModelSettings

    def create_model(settings: LanguageModelSettings) -> ModelClass:
        match settings.get_model_source():
            case "OpenAI":
                return ModelClass(settings.get_model_name())
            case _:
                raise ValueError(f"Invalid source: {settings.model}")

    models = LazyLoadingDict(create_model)
    model = models[LanguageModelSettings(model="OpenAI/gpt-4o-mini")]
    # the same object is returned for an equal specification
    assert model is models[LanguageModelSettings(model="OpenAI/gpt-4o-mini")]
    ```

Values may also be assigned directly, bypassing the factory.

Expected behaviour: may raise ValidationError and ValueErrors.
"""

from collections.abc import Callable
from typing import TypeVar

# ValueT is the parameter for the stored valued, KeyT for the keys.
ValueT = TypeVar('ValueT')
KeyT = TypeVar('KeyT')


class LazyLoadingDict(dict[KeyT, ValueT]):
    """A dictionary creating its values on first access with a
    factory function. Values removed from the dictionary are closed
    with the destructor function, if given, or with their own close()
    method, if they have one."""

    def __init__(
        self,
        key_creator_func: Callable[[KeyT], ValueT],
        destructor_func: Callable[[ValueT], None] | None = None,
    ):
        super().__init__()
        self._key_creator_func = key_creator_func
        self._destructor_func = destructor_func

    def _destroy_value(self, value: ValueT) -> None:
        if self._destructor_func:
            self._destructor_func(value)
        elif callable(getattr(value, "close", None)):
            value.close()  # type: ignore (checked)

    def __getitem__(self, key: KeyT) -> ValueT:
        if key in self:
            return super().__getitem__(key)

        value: ValueT = self._key_creator_func(key)
        super().__setitem__(key, value)
        return value

    def __setitem__(self, key: KeyT, value: ValueT) -> None:
        """Set a value directly, bypassing the factory function.

        Raises:
            ValueError: If the key already exists in the dictionary.
        """
        if key in self:
            raise ValueError(
                f"Key '{key}' already exists. Delete it first to overwrite."
            )
        super().__setitem__(key, value)

    def __delitem__(self, key: KeyT) -> None:
        if key in self:
            self._destroy_value(super().__getitem__(key))
        super().__delitem__(key)

    def clear(self) -> None:
        for value in list(self.values()):
            self._destroy_value(value)
        super().clear()
