import logging


# Library logger - no configuration, user controls output
logger = logging.getLogger(__name__)


class BiotrajBaseError(Exception):
    """
    Base class for all biotraj-specific errors.

    All biotraj exceptions inherit from this class, allowing users to catch
    any biotraj-specific error with a single except clause.

    Args:
        message: The error message describing what went wrong
        context: Optional additional context about where the error occurred
    """

    def __init__(self, message: str, context: str | None = None) -> None:
        self.message = message
        self.context = context

        # Library logs at DEBUG level - user can promote if needed
        logger.debug("biotraj exception: %s", self._format_message())
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with optional context."""
        if self.context:
            return f"{self.message} (Context: {self.context})"
        return self.message


class ConfigurationError(BiotrajBaseError):
    """
    Raised when there is an invalid or incomplete solver or problem configuration.

    Configuration errors are detected when a problem is registered or a discrete
    problem is constructed, always before the NLP solver is invoked.

    Examples:
        - Lower bound greater than upper bound
        - Unknown transcription or finite difference scheme
        - Kinematic pairs that are not of the form q' = u (e.g., quaternions)
        - Invalid mesh configuration or parallelism setting
    """

    pass


class ProblemNotReadyError(ConfigurationError):
    """Raised when an operation needs a registered problem but none has been set."""

    pass


class GuessError(BiotrajBaseError):
    """
    Raised when an initial guess cannot be materialized.

    Guess files are read lazily, so this error surfaces when the guess is first
    accessed or when solving, not when the file path is set.

    Examples:
        - Guess file does not exist or cannot be parsed
        - Iterate variable names do not match the problem
        - Iterate time values are not strictly increasing
    """

    pass


class NoGuessError(GuessError):
    """Raised when a guess is requested but nothing is configured to provide one."""

    pass


class EvaluationError(BiotrajBaseError):
    """
    Raised when a problem function fails while being evaluated at a grid point.

    The snapshot that was in use when the failure occurred is discarded from the
    problem representation cache rather than reused.
    """

    pass


class DataIntegrityError(BiotrajBaseError):
    """
    Raised when internal data corruption or inconsistency is detected.

    This typically represents a bug in biotraj or a problem implementation
    returning outputs of the wrong size, rather than user configuration error.

    Examples:
        - NaN or infinite values in extracted results
        - Mismatched array dimensions in internal calculations
        - Releasing a snapshot that was never acquired
    """

    pass


class SolutionExtractionError(BiotrajBaseError):
    """
    Raised when solution data cannot be extracted from the optimization result.

    This exception occurs when biotraj fails to process the raw solver output
    into the Solution format, typically due to unexpected solver behavior.
    """

    pass
