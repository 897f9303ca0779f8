"""
Composite (chain-of-responsibility) routing strategy.

Members are tagged at construction time:

    CompositeStrategy(
        NonTerminal(OverrideStrategy()),
        NonTerminal(FallbackStrategy()),
        Terminal(DefaultStrategy()),
        name="router",
    )

Non-terminal members are tried in order; a member that raises is logged
and skipped. If none decides, the terminal member runs and its failure
propagates. Exactly one Terminal is allowed and it must come last, so an
empty or all-non-terminal chain is rejected when the composite is built.
"""
from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass

from zulu_pilot.errors import RoutingConfigurationError, RoutingError

from .strategies import RoutingContext, RoutingDecision, RoutingStrategy, TerminalStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NonTerminal:
    """A chain member that may decline or fail without stopping routing."""

    strategy: RoutingStrategy

    @property
    def name(self) -> str:
        return self.strategy.name


@dataclass(frozen=True)
class Terminal:
    """The final chain member; always decides or raises."""

    strategy: TerminalStrategy

    @property
    def name(self) -> str:
        return self.strategy.name


class CompositeStrategy:
    """
    Tries child strategies in priority order.

    A composite always decides or raises, so it can itself be wrapped
    in Terminal and nested inside another composite.
    """

    def __init__(self, *members: NonTerminal | Terminal, name: str = "composite"):
        """
        Initialize composite strategy.

        Args:
            members: NonTerminal members followed by exactly one Terminal
            name: Label prefixed to the source of every decision

        Raises:
            RoutingConfigurationError: If the chain is empty, has no Terminal,
                has more than one, or the Terminal is not last
        """
        if not members:
            raise RoutingConfigurationError(
                f"Composite strategy '{name}' needs at least a terminal strategy"
            )

        for member in members:
            if not isinstance(member, (NonTerminal, Terminal)):
                raise RoutingConfigurationError(
                    f"Composite strategy '{name}' members must be wrapped in "
                    f"NonTerminal or Terminal, got {type(member).__name__}"
                )

        terminals = [m for m in members if isinstance(m, Terminal)]
        if len(terminals) != 1:
            raise RoutingConfigurationError(
                f"Composite strategy '{name}' needs exactly one terminal strategy, "
                f"got {len(terminals)}"
            )
        if not isinstance(members[-1], Terminal):
            raise RoutingConfigurationError(
                f"Composite strategy '{name}': terminal strategy "
                f"'{terminals[0].name}' must be last"
            )

        self.name = name
        self._non_terminal: tuple[NonTerminal, ...] = members[:-1]
        self._terminal: Terminal = members[-1]

    @property
    def strategy_names(self) -> list[str]:
        return [m.name for m in self._non_terminal] + [self._terminal.name]

    async def route(self, context: RoutingContext) -> RoutingDecision:
        """
        Route a request through the chain.

        Raises:
            Whatever the terminal strategy raises; RoutingError if it
            returns no decision.
        """
        start = time.perf_counter()

        for member in self._non_terminal:
            try:
                decision = await member.strategy.route(context)
            except Exception as e:
                logger.warning(
                    f"[{self.name}] Strategy '{member.name}' failed, "
                    f"continuing to next strategy: {e}"
                )
                continue
            if decision is not None:
                return self._finalize(decision, start)

        try:
            decision = await self._terminal.strategy.route(context)
            if decision is None:
                raise RoutingError(
                    self._terminal.name, "Terminal strategy returned no decision"
                )
        except Exception as e:
            logger.error(
                f"[{self.name}] Terminal strategy '{self._terminal.name}' failed, "
                f"routing cannot proceed: {e}"
            )
            raise

        return self._finalize(decision, start)

    def _finalize(self, decision: RoutingDecision, start: float) -> RoutingDecision:
        """Prefix the source and fill in latency when the child reported none."""
        elapsed_ms = (time.perf_counter() - start) * 1000
        latency = decision.latency_ms or elapsed_ms

        finalized = dataclasses.replace(
            decision,
            source=f"{self.name}/{decision.source}",
            latency_ms=int(round(latency)),
        )
        logger.debug(
            f"Routing decision: {finalized.source} -> {finalized.provider_name}"
            f" (model={finalized.model}, latency={finalized.latency_ms}ms)"
        )
        return finalized

    def __repr__(self) -> str:
        return f"CompositeStrategy(name={self.name!r}, strategies={self.strategy_names})"
