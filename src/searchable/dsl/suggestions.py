from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Self

from searchable.errors import InvalidClauseError

SuggesterType = Literal["term", "phrase", "completion"]


@dataclass(frozen=True, kw_only=True, slots=True)
class Suggester:
    """A named suggester: the engine-side type, the field it reads and the input text."""

    type: SuggesterType
    field: str
    text: str
    options: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class SuggestionState:
    """Suggesters keyed by name; re-registering a name replaces it in place."""

    suggesters: dict[str, Suggester] = field(default_factory=dict)


class SuggestionBuilder:
    """Registers term, phrase and completion suggesters."""

    def __init__(self, state: SuggestionState | None = None) -> None:
        """Write into `state`, or a fresh one."""
        self.state: SuggestionState = state if state is not None else SuggestionState()

    def _register(
        self,
        type_: SuggesterType,
        name: str,
        field_: str,
        text: str,
        options: Mapping[str, Any] | None,
    ) -> Self:
        if not name:
            raise InvalidClauseError("Suggester name must be a non-empty string")
        if not field_:
            raise InvalidClauseError(f"Suggester '{name}' requires a field")
        self.state.suggesters[name] = Suggester(
            type=type_, field=field_, text=text, options=dict(options or {})
        )
        return self

    def term(
        self, name: str, field: str, text: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        """Per-term spelling corrections."""
        return self._register("term", name, field, text, options)

    def phrase(
        self, name: str, field: str, text: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        """Whole-phrase corrections."""
        return self._register("phrase", name, field, text, options)

    def completion(
        self, name: str, field: str, text: str, options: Mapping[str, Any] | None = None
    ) -> Self:
        """Search-as-you-type against a `completion` field."""
        return self._register("completion", name, field, text, options)
