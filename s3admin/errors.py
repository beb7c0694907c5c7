"""
Error kinds raised by the administration engine.

Every error the engine surfaces derives from S3Error so the interpreter
and the CLI can treat them uniformly.
"""


class S3Error(Exception):
    """Base class for all engine errors."""


class BindingError(S3Error):
    """No administration context is bound when one is required."""


class ResolutionError(S3Error):
    """A chain read failed or returned an unexpected shape."""


class ValidationError(S3Error):
    """Malformed configuration, declaration, call blob or transcript input."""

    def __init__(self, message: str, field: str = ""):
        self.field = field
        if field:
            message = f"{field}: {message}"
        super().__init__(message)


class PublishExhausted(S3Error):
    """Every gas price in a ladder failed to clear the network."""

    def __init__(self, gas_prices, attempts: int):
        self.gas_prices = list(gas_prices)
        self.attempts = attempts
        if self.gas_prices:
            span = f"{self.gas_prices[0]}..{self.gas_prices[-1]} wei"
        else:
            span = "empty ladder"
        super().__init__(
            f"gas ladder exhausted after {attempts} attempt(s) ({span}); "
            f"re-author the transcript with a wider price range"
        )


class Conflict(S3Error):
    """An output artifact already exists and must not be overwritten."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"the output target {path} exists already, aborting")


class BroadcastRejected(S3Error):
    """The network refused one signed payload (underpriced, replaced, known...).

    Raised per attempt; the publisher moves on to the next rung of the ladder.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"broadcast rejected: {reason}")
