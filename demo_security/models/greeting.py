"""
Greeting sample resource.
"""

import itertools
import threading

import fastapi
from pydantic import BaseModel, ConfigDict, Field, computed_field


class Greeting(BaseModel):
    """
    Immutable greeting returned by the protected /greeting endpoints.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Sequential greeting identifier")
    content: str = Field(..., description="Greeting text")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def framework_version(self) -> str:
        """Version of the web framework serving this greeting."""
        return fastapi.__version__


class GreetingCounter:
    """Thread-safe source of greeting ids, starting at 1."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def next_id(self) -> int:
        with self._lock:
            return next(self._counter)

    def greet(self, template: str, name: str) -> Greeting:
        return Greeting(id=self.next_id(), content=template.format(name=name))
