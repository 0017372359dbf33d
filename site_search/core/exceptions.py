"""
Error taxonomy for the search engine.

Malformed queries are rejected by the pydantic models themselves
(``pydantic.ValidationError``); everything raised by the engine proper
derives from ``SearchError``.
"""


class SearchError(Exception):
    """Base class for search engine errors."""


class NotFoundError(SearchError, LookupError):
    """An item, history entry or saved search id is unknown."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class IndexBuildError(SearchError):
    """The content index could not be built from the supplied corpus."""


class DuplicateIdError(IndexBuildError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Duplicate item id in corpus: {item_id}")


class IllegalTransitionError(SearchError):
    """The orchestrator received an event its current phase does not accept."""

    def __init__(self, phase, event):
        self.phase = phase
        self.event = event
        super().__init__(f"Event {event.value!r} is not valid in phase {phase.value!r}")


class PersistenceError(SearchError):
    """The persistence port failed to load or save a value."""
