"""Display-side polling client."""

from __future__ import annotations

from ecotel.client.poller import Poller, PollResult, PollState

__all__ = [
    "PollResult",
    "PollState",
    "Poller",
]
