"""Typed failures surfaced to callers of the signal engine."""


class SignalEngineError(Exception):
    """Base class for engine failures scoped to one analysis or scan unit."""


class NoDataError(SignalEngineError):
    """Market data for a symbol was unavailable, empty or malformed."""

    def __init__(self, symbol: str, reason: str = "no data"):
        self.symbol = symbol
        self.reason = reason
        super().__init__(f"{symbol}: {reason}")


class DailyLossLimitError(SignalEngineError):
    """The projected trade would push today's realized loss past the user's cap."""

    def __init__(self, current_loss: float, projected_risk: float, max_loss: float):
        self.current_loss = current_loss
        self.projected_risk = projected_risk
        self.max_loss = max_loss
        super().__init__(
            f"daily loss limit: {current_loss:.2f} + {projected_risk:.2f} "
            f"> {max_loss:.2f}"
        )
