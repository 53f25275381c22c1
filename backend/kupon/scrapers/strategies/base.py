"""Fetch strategy interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

import structlog

from kupon.scrapers.base import FetchTarget, RawItem


class FetchStrategy(ABC):
    """A pluggable producer of RawItems for one endpoint.

    ``fetch`` raises (usually FetchFailure) when it cannot produce a result;
    an empty list is a valid, successful result. Strategies that set
    ``hard_timeout`` are abandoned by the chain once it elapses.
    """

    name: str = ""
    hard_timeout: Optional[float] = None

    def __init__(self):
        self.logger = structlog.get_logger(__name__).bind(strategy=self.name)

    @abstractmethod
    async def fetch(self, target: FetchTarget) -> List[RawItem]:
        """Produce raw items for a target.

        Args:
            target: Platform endpoint to fetch

        Returns:
            List of RawItem (possibly empty)

        Raises:
            FetchFailure: If the strategy cannot produce a result
        """
        pass
