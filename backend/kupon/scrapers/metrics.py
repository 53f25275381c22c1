"""Per-session counters stored in scrape_sessions.performance_metrics."""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List


@dataclass
class SessionMetrics:
    """Request/item counters and derived rates for one platform run."""

    requests: int = 0
    successes: int = 0
    errors: int = 0
    items_found: int = 0
    items_saved: int = 0
    items_updated: int = 0
    items_rejected: int = 0
    strategies: Dict[str, int] = field(default_factory=dict)
    error_log: List[Dict[str, str]] = field(default_factory=list)
    _started: float = field(default_factory=time.monotonic, repr=False)

    def record_request(self) -> None:
        self.requests += 1

    def record_success(self, strategy: str, items: int) -> None:
        self.successes += 1
        self.items_found += items
        self.strategies[strategy] = self.strategies.get(strategy, 0) + 1

    def record_error(self, scope: str, message: str) -> None:
        self.errors += 1
        self.error_log.append(
            {
                "scope": scope,
                "error": message[:500],
                "at": datetime.now(timezone.utc).isoformat(),
            }
        )

    def record_reject(self) -> None:
        self.items_rejected += 1

    @property
    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self._started) * 1000)

    def to_dict(self) -> Dict[str, Any]:
        def rate(part: int, whole: int) -> float:
            return round(part / whole * 100, 2) if whole else 0.0

        return {
            "requests": self.requests,
            "successes": self.successes,
            "errors": self.errors,
            "items_found": self.items_found,
            "items_saved": self.items_saved,
            "items_updated": self.items_updated,
            "items_rejected": self.items_rejected,
            "strategies": dict(self.strategies),
            "success_rate": rate(self.successes, self.requests),
            "error_rate": rate(self.errors, self.requests),
            "save_rate": rate(self.items_saved, self.items_found),
            "elapsed_ms": self.elapsed_ms,
        }
