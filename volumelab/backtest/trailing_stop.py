"""Trailing stop — ratcheting cutoff for the open long position.

Rules:
  - On entry, cutoff = entry × (1 − cutoff_percent).
  - Every bar held, cutoff = max(cutoff, close × (1 − trailing_factor)).
  - The cutoff never moves down.
"""

from typing import Optional


class TrailingStop:
    """Tracks the cutoff price for a single long position.

    Args:
        entry_price: Buy price.
        cutoff_percent: Initial distance below entry, as a fraction.
        trailing_factor: Distance kept below each close, as a fraction.
    """

    def __init__(
        self,
        entry_price: float,
        cutoff_percent: float,
        trailing_factor: float,
    ) -> None:
        self.entry_price = entry_price
        self.trailing_factor = trailing_factor
        self.cutoff = entry_price * (1 - cutoff_percent)

    def is_breached(self, close: float) -> bool:
        return close < self.cutoff

    def update(self, close: float) -> Optional[float]:
        """Raise the cutoff towards *close* if the ratchet allows.

        Returns:
            The new cutoff if it moved, ``None`` otherwise.
        """
        candidate = close * (1 - self.trailing_factor)
        if candidate > self.cutoff:
            self.cutoff = candidate
            return candidate
        return None
