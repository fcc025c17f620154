from __future__ import annotations

import logging

log = logging.getLogger(__name__)

BASE_DELAY         = 0.5    # seconds between enrichment batches at start
MIN_DELAY          = 0.25   # floor reached after sustained healthy batches
MAX_DELAY          = 10.0
SUCCESS_DECAY      = 0.9
LOW_QUOTA_GROWTH   = 1.5
LOW_QUOTA_WATER    = 500    # start slowing down below this many remaining points
CRITICAL_QUOTA     = 100    # log a warning below this


class AdaptiveDelay:
    """
    Inter-batch delay for serialized provider calls.

    Concurrency in the enrichment stage is replaced by rate shaping:
      - healthy quota   -> delay shrinks multiplicatively toward MIN_DELAY
      - quota below LOW_QUOTA_WATER -> delay grows multiplicatively up to MAX_DELAY

    Rate-limit backoff is NOT applied here; it belongs to the retry
    wrapper, so a retried batch resumes the cadence it had before.
    """

    def __init__(
        self,
        base: float = BASE_DELAY,
        floor: float = MIN_DELAY,
        ceiling: float = MAX_DELAY,
        low_water: int = LOW_QUOTA_WATER,
        critical: int = CRITICAL_QUOTA,
    ) -> None:
        self._floor     = floor
        self._ceiling   = ceiling
        self._low_water = low_water
        self._critical  = critical
        self.current    = base

    def record_success(self, rate_remaining: int | None) -> float:
        """Adjust after a successful batch and return the delay to wait next."""
        if rate_remaining is not None and rate_remaining < self._low_water:
            self.current = min(self.current * LOW_QUOTA_GROWTH, self._ceiling)
            if rate_remaining < self._critical:
                log.warning("Rate limit critical: %d points remaining | delay=%.2fs", rate_remaining, self.current)
            else:
                log.info("Rate limit low: %d points remaining | delay=%.2fs", rate_remaining, self.current)
        else:
            self.current = max(self.current * SUCCESS_DECAY, self._floor)
        return self.current
