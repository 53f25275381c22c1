"""Fetch strategy chain with ordered fallback."""

import asyncio
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import structlog

from kupon.core.exceptions import ChainExhausted
from kupon.scrapers.base import FetchTarget, RawItem
from kupon.scrapers.strategies.base import FetchStrategy

logger = structlog.get_logger(__name__)


class FetchStrategyChain:
    """Runs strategies in order until one succeeds.

    Success means "did not raise": an empty list is accepted. A global
    override (force mock / force curated) or a denylisted
    (platform, endpoint) pair starts the chain further down.
    """

    def __init__(
        self,
        strategies: Sequence[FetchStrategy],
        force_mock: bool = False,
        force_curated: bool = False,
        problematic_targets: Optional[Iterable[Tuple[str, str]]] = None,
        problematic_strategy: str = "synthetic",
    ):
        if not strategies:
            raise ValueError("FetchStrategyChain needs at least one strategy")
        self.strategies: List[FetchStrategy] = list(strategies)
        self.force_mock = force_mock
        self.force_curated = force_curated
        self.problematic_targets: Set[Tuple[str, str]] = set(problematic_targets or ())
        self.problematic_strategy = problematic_strategy
        self.last_strategy: Optional[str] = None

    def _start_strategy(self, target: FetchTarget) -> Optional[str]:
        if self.force_mock:
            return "synthetic"
        if self.force_curated:
            return "curated"
        if (target.platform.slug, target.endpoint) in self.problematic_targets:
            return self.problematic_strategy
        return None

    def plan(self, target: FetchTarget) -> List[FetchStrategy]:
        """Strategies that will be tried for a target, in order."""
        start = self._start_strategy(target)
        if start is None:
            return list(self.strategies)

        names = [s.name for s in self.strategies]
        if start not in names:
            logger.warning("override_strategy_unavailable", target=target.key, strategy=start, available=names)
            return list(self.strategies)

        logger.debug("chain_short_circuit", target=target.key, start=start)
        return self.strategies[names.index(start):]

    async def fetch(self, target: FetchTarget) -> List[RawItem]:
        """Return items from the first strategy that does not raise.

        Raises:
            ChainExhausted: If every planned strategy raised or timed out
        """
        failures: Dict[str, str] = {}
        self.last_strategy = None

        for strategy in self.plan(target):
            try:
                if strategy.hard_timeout:
                    items = await asyncio.wait_for(strategy.fetch(target), timeout=strategy.hard_timeout)
                else:
                    items = await strategy.fetch(target)
            except asyncio.TimeoutError:
                failures[strategy.name] = f"hard timeout after {strategy.hard_timeout:g}s"
                logger.warning("strategy_timed_out", target=target.key, strategy=strategy.name, timeout=strategy.hard_timeout)
                continue
            except Exception as e:
                failures[strategy.name] = str(e) or type(e).__name__
                logger.warning("strategy_failed", target=target.key, strategy=strategy.name, error=str(e))
                continue

            for item in items:
                item.strategy = strategy.name
            self.last_strategy = strategy.name
            logger.info("strategy_succeeded", target=target.key, strategy=strategy.name, count=len(items))
            return items

        logger.error("fetch_chain_exhausted", target=target.key, failures=failures)
        raise ChainExhausted(target.key, failures)
