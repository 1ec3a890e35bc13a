"""
Exceptions raised by the backup components.

Every error carries the process exit code the CLI reports when it aborts a
run. Copy tool failures map into a separate band (100 + tool exit code) so
the caller can recover the tool's own status.
"""

from typing import Optional


EXIT_OK = 0
EXIT_SOURCE = 1
EXIT_DESTINATION = 2
EXIT_STAGING = 3
EXIT_CREATE_SNAPSHOT = 4
EXIT_LATEST_LINK = 5
EXIT_MISSING_DEPENDENCIES = 6
EXIT_USAGE = 7
EXIT_CREDENTIALS = 8
EXIT_TOOL_BASE = 100


class BackupError(Exception):
    """Base class for errors that abort a backup run."""
    exit_code = EXIT_SOURCE

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(BackupError):
    """Raised when a mandatory path is missing or unusable."""
    pass


class DependencyMissingError(BackupError):
    """Raised when a required external program is not installed."""
    exit_code = EXIT_MISSING_DEPENDENCIES

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"Needed externals not found: {' '.join(self.missing)}")


class StagingError(BackupError):
    """Raised when a tier directory cannot be created or written to."""
    exit_code = EXIT_STAGING

    CANNOT_CREATE = 'cannot_create'
    NOT_A_DIRECTORY = 'not_a_directory'
    NOT_WRITABLE = 'not_writable'

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason


class SourceEnumerationError(BackupError):
    """Raised when the units to back up cannot be determined."""
    exit_code = EXIT_SOURCE


class CopyError(BackupError):
    """Raised when a snapshot copy fails."""
    exit_code = EXIT_CREATE_SNAPSHOT

    CANNOT_CREATE_DESTINATION = 'cannot_create_destination'
    TOOL_FAILED = 'tool_failed'
    TOOL_UNAVAILABLE = 'tool_unavailable'

    def __init__(self, message: str, kind: str, tool_exit_code: Optional[int] = None):
        if tool_exit_code is not None and tool_exit_code < 0:
            # Killed by signal N: report 128 + N like a shell does
            tool_exit_code = 128 - tool_exit_code
        if kind == self.TOOL_FAILED:
            exit_code = EXIT_TOOL_BASE + tool_exit_code
        elif kind == self.TOOL_UNAVAILABLE:
            exit_code = EXIT_MISSING_DEPENDENCIES
        else:
            exit_code = EXIT_CREATE_SNAPSHOT
        super().__init__(message, exit_code)
        self.kind = kind
        self.tool_exit_code = tool_exit_code


class LinkError(BackupError):
    """Raised when the 'latest' pointer cannot be updated."""
    exit_code = EXIT_LATEST_LINK

    CREATE_FAILED = 'create_failed'
    REMOVE_FAILED = 'remove_failed'

    def __init__(self, message: str, kind: str):
        super().__init__(message)
        self.kind = kind


class PurgeError(BackupError):
    """Failure to remove one expired snapshot. Collected, never fatal."""
    exit_code = EXIT_OK

    def __init__(self, message: str, path):
        super().__init__(message)
        self.path = path
