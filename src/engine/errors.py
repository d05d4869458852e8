class EngineError(Exception):
    """Base class for failures surfaced to callers as {kind, message}."""

    kind = "engine_error"

    def to_dict(self):
        return {"kind": self.kind, "message": str(self)}


class InsufficientDataError(EngineError):
    kind = "insufficient_data"


class BacktestCancelled(EngineError):
    kind = "cancelled"


class UnknownStrategyError(EngineError, KeyError):
    kind = "unknown_strategy"

    def __str__(self):
        # KeyError wraps its message in quotes
        return Exception.__str__(self)
