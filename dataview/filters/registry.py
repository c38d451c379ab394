from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from dataview.filters.base_filter import BaseFilter

FilterFactory = Callable[..., BaseFilter]


class FilterRegistry:
    """
    Registry of filter factories so DataSources can build filters from a type name

    Purpose:
    - Decouples filter definitions (plain strings in config) from filter implementations by exposing
      {@link create(type_name, ...)}
    - Keeps filter types open for extension: any callable returning a {@link BaseFilter} can be registered

    Design Notes:
    - Stores factories (usually {@link BaseFilter} subclasses), not instances, so each DataSource gets its own filters
    - Enforces invariants:
        * only callables can be registered
        * each type name is unique across the registry unless replace=True
    - A registry is handed to each DataSource through its constructor, there is no global one
    """

    def __init__(self):
        self._factories: Dict[str, FilterFactory] = {}

    def register(self, type_name: str, factory: FilterFactory, *, replace: bool = False) -> None:
        """
        Register a filter factory under a type name

        :param type_name: the name used in filter definitions ("string", "int", ...)
        :param factory: a {@link BaseFilter} subclass or any callable returning a {@link BaseFilter}
        :param replace: allow overriding an existing registration

        Raises:
            TypeError: if factory is not callable
            ValueError: if type_name is already registered and replace is False
        """
        if not callable(factory):
            raise TypeError(f"Filter factory for '{type_name}' must be callable")

        if type_name in self._factories and not replace:
            raise ValueError(f"Filter type '{type_name}' already registered")

        self._factories[type_name] = factory

    def get(self, type_name: str) -> Optional[FilterFactory]:
        """
        :return: the factory registered under type_name, or None
        """
        return self._factories.get(type_name)

    def create(self, type_name: str, *args: Any, **kwargs: Any) -> Optional[BaseFilter]:
        """
        Instantiate a filter of the given type. Arguments are passed to the factory as-is.
        :return: the filter instance, or None if type_name is unknown

        Raises:
            TypeError: if the factory doesn't return a {@link BaseFilter}
        """
        factory = self.get(type_name)
        if factory is None:
            return None

        instance = factory(*args, **kwargs)
        if not isinstance(instance, BaseFilter):
            raise TypeError(
                f"Factory for filter type '{type_name}' returned {type(instance).__name__}, not a BaseFilter"
            )
        return instance

    def types(self) -> List[str]:
        """
        :return: registered type names, in registration order
        """
        return list(self._factories)

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._factories
