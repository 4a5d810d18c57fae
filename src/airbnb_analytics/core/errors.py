"""Exception taxonomy for the analytics pipeline.

Model-level errors are fatal for the model that raised them: its table is
not written and downstream models are skipped. Row-level data-quality
problems never raise; they are captured by the data-quality runner.
"""


class AnalyticsError(RuntimeError):
    """Base class for pipeline failures."""


class ConfigError(AnalyticsError):
    """Raised when project configuration is missing or invalid."""


class SourceError(AnalyticsError):
    """Raised when a raw source or seed file cannot be read."""


class ContractViolationError(AnalyticsError):
    """Raised when a model's output does not match its declared contract."""

    def __init__(self, model: str, problems: list[str]):
        self.model = model
        self.problems = list(problems)
        super().__init__(f"Contract violated for {model}: " + "; ".join(self.problems))


class CleansingError(AnalyticsError):
    """Raised when a field cannot be cleansed."""


class PriceParseError(CleansingError):
    """Raised when a price string is not a well-formed non-negative amount."""

    def __init__(self, value: object, reason: str = "not a currency amount"):
        self.value = value
        super().__init__(f"Cannot parse price {value!r}: {reason}")


class IncrementalSchemaError(AnalyticsError):
    """Raised when an incremental batch no longer matches the target table columns."""


class SnapshotError(AnalyticsError):
    """Raised when a snapshot extract cannot be applied to its history."""
