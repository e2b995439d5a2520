#!/usr/bin/env python3
"""
Error taxonomy for the SNP lookup engine.

Failures fall into four groups, each with its own handling policy:

- ConfigurationError: invalid options or an unusable reference build.
  Fatal, raised before any query is issued.
- ReferenceUnavailableError: the reference store cannot be opened at all.
  Fatal, raised before any query is issued.
- BackendError: a single batched query failed. Recovered by the scheduler,
  which reports the whole chunk as NOT_FOUND and carries on.
- ReportWriteError: the report document could not be written. Logged as a
  warning; the primary output stream is unaffected.
"""


class SnpLookupError(Exception):
    """Base class for all lookup engine errors."""


class ConfigurationError(SnpLookupError):
    """Invalid run configuration detected before processing begins."""


class ReferenceUnavailableError(SnpLookupError):
    """Reference variant store is missing or unreadable."""


class BackendError(SnpLookupError):
    """
    A backend query failed.

    Attributes:
        command: Command line or operation that failed (if any)
        stderr: Captured diagnostic output from the backend (if any)
    """

    def __init__(self, message: str, command: str = "", stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr = stderr


class ReportWriteError(SnpLookupError):
    """Report document could not be written to its destination."""
