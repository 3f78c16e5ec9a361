"""Exit codes for the noisewatch CLI.

- 0: Success
- 1: General/unspecified error
- 2: Invalid command-line arguments or estimator configuration
- 3-5: Run-time failures specific to the estimator

Usage:
    from noisewatch.util.exit_codes import ExitCode
    sys.exit(ExitCode.INPUT_ERROR)
"""

from __future__ import annotations


class ExitCode:
    """Exit code constants.

    Attributes:
        SUCCESS: All batches processed, workers stopped cleanly.
        GENERAL_ERROR: Unspecified runtime error.
        INVALID_ARGS: Argument or configuration validation failed.
        INPUT_ERROR: Sample input could not be read or was malformed.
        WORKER_FAILED: A worker raised while processing a batch.
        INTERRUPTED: Stopped by Ctrl-C before the input was drained.
    """

    SUCCESS: int = 0
    GENERAL_ERROR: int = 1
    INVALID_ARGS: int = 2
    INPUT_ERROR: int = 3
    WORKER_FAILED: int = 4
    INTERRUPTED: int = 5

    @classmethod
    def message(cls, code: int) -> str:
        messages = {
            cls.SUCCESS: "Success",
            cls.GENERAL_ERROR: "General error",
            cls.INVALID_ARGS: "Invalid arguments",
            cls.INPUT_ERROR: "Input error",
            cls.WORKER_FAILED: "Worker failed",
            cls.INTERRUPTED: "Interrupted",
        }
        return messages.get(code, f"Unknown exit code {code}")
