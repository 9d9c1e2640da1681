from __future__ import annotations

from ecotel.output.formatter import OutputFormatter

__all__ = ["OutputFormatter"]
