"""Exception hierarchy for fillback."""


class FillbackError(Exception):
    """Base class for all fillback errors."""


class ParseError(FillbackError):
    """A single file could not be analyzed. Recoverable: the run continues."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class AnalysisError(FillbackError):
    """Fatal analysis failure: nothing usable was produced."""


class StrategyError(FillbackError):
    """No import strategy matches the requested name or source."""
