from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Any

from versevision.specs.common.image import ImageReference


class Agent(ABC):
    """Abstract base class for all agents.

    Provides a standard ``run`` interface and support for attaching a
    ``session_id`` used for logging.
    """

    def __init__(self) -> None:
        self._session_id: str | None = None

    def with_session(self, session_id: str | None) -> "Agent":
        """Return a shallow copy bound to ``session_id`` for downstream logging.

        The receiver is left untouched, so a shared agent can serve
        concurrent requests.
        """

        bound = copy.copy(self)
        bound._session_id = session_id
        return bound

    @abstractmethod
    def run(self, *args: Any, **kwargs: Any) -> Any:
        """Execute the agent and return its structured output."""


class PoemGenerator(Agent):
    """Narrow interface over the generative service.

    ``generate`` turns an image into a poem and ``refine`` rewrites a poem
    from free-text feedback. Both raise ``EmptyResultError`` when the service
    answers with no text and ``ServiceError`` for anything else that goes
    wrong. Implementations make exactly one attempt per call.
    """

    @abstractmethod
    def generate(self, image: ImageReference) -> str:
        """Return a poem inspired by ``image``."""

    @abstractmethod
    def refine(self, poem: str, feedback: str) -> str:
        """Return ``poem`` revised according to ``feedback``."""

    def run(self, image: ImageReference) -> str:
        return self.generate(image)


__all__ = ["Agent", "PoemGenerator"]
