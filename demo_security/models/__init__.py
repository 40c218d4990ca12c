"""Models package initialization."""

from .greeting import Greeting, GreetingCounter
from .principal import AuthenticatedPrincipal
from .token import TokenDetails

__all__ = ["AuthenticatedPrincipal", "Greeting", "GreetingCounter", "TokenDetails"]
