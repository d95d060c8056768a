"""
Standard exit codes for relaygate hooks and commands.

Following Unix/POSIX conventions for command-line tools, with a distinct
code for "the pipeline is misconfigured" versus "the change violates policy".
"""
# Standard POSIX exit codes
SUCCESS = 0              # Change accepted
REJECTED = 1             # Change violates policy
USAGE_ERROR = 2          # Missing required invocation context

# Application-specific exit codes (64-113 are typically available)
EXTRACTION_ERROR = 65    # Changeset could not be computed from git
CONFIG_ERROR = 66        # Configuration file error
INTERRUPTED = 130        # Terminated by Ctrl+C (SIGINT)

# Exit code mappings for common exceptions
EXCEPTION_EXIT_CODES = {
    'UsageError': USAGE_ERROR,
    'ExtractionError': EXTRACTION_ERROR,
    'ConfigError': CONFIG_ERROR,
    'KeyboardInterrupt': INTERRUPTED,
}


def get_exit_code_for_exception(exc: BaseException) -> int:
    """
    Get the appropriate exit code for an exception.

    Args:
        exc: The exception that occurred

    Returns:
        Appropriate exit code
    """
    if isinstance(exc, CommandError):
        return exc.exit_code
    exc_name = exc.__class__.__name__
    return EXCEPTION_EXIT_CODES.get(exc_name, REJECTED)


class CommandError(Exception):
    """
    Exception that hooks and commands raise to indicate specific exit codes.
    """
    def __init__(self, message: str, exit_code: int = REJECTED):
        super().__init__(message)
        self.exit_code = exit_code


class UsageError(CommandError):
    """Raised when required invocation context (git dir, new revision) is missing."""
    def __init__(self, message: str):
        super().__init__(message, USAGE_ERROR)


class ExtractionError(CommandError):
    """Raised when the changeset between two revisions cannot be computed."""
    def __init__(self, message: str):
        super().__init__(message, EXTRACTION_ERROR)


class ConfigError(CommandError):
    """Raised when there's a configuration error."""
    def __init__(self, message: str):
        super().__init__(message, CONFIG_ERROR)

