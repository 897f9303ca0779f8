"""
Zulu Pilot Routing

Active-provider state, the router, and routing strategies.
"""

from .composite import CompositeStrategy, NonTerminal, Terminal
from .router import ParsedModelId, ProviderRouter, RouterState, parse_model_id
from .strategies import (
    AUTO_MODEL,
    DefaultStrategy,
    FallbackStrategy,
    OverrideStrategy,
    RoutingContext,
    RoutingDecision,
    RoutingStrategy,
    TerminalStrategy,
)

__all__ = [
    # Router
    "ParsedModelId",
    "ProviderRouter",
    "RouterState",
    "parse_model_id",
    # Strategies
    "AUTO_MODEL",
    "DefaultStrategy",
    "FallbackStrategy",
    "OverrideStrategy",
    "RoutingContext",
    "RoutingDecision",
    "RoutingStrategy",
    "TerminalStrategy",
    # Composite
    "CompositeStrategy",
    "NonTerminal",
    "Terminal",
]
