"""Error types shared by the search client, the fetchers and the CLI.

Every error carries an ``exit_code`` so the CLI can turn a fatal failure
into a process exit status:

  1  the run could not start (bad arguments, unwritable output directory)
  2  a crucial network request failed
  3  an upstream service behaved unexpectedly
"""

from __future__ import annotations

HELP_NETWORK = "Do you have an internet connection?"
HELP_JSON = (
    "This is likely caused by a broken backend and not your fault.\n"
    "Please update the application. If the error persists, open an issue."
)
HELP_FFMPEG = (
    "This was an error with ffmpeg. Consider updating your local copy, "
    "or use a different '--vreddit-mode'."
)


class RipperError(Exception):
    """Base class for every error raised by the ripper."""

    exit_code = 3
    help: str | None = None


class TransportError(RipperError):
    """The connection failed before a response was received."""

    exit_code = 2
    help = HELP_NETWORK


class UpstreamError(RipperError):
    """The server answered with a non-success status code."""

    def __init__(self, status: int, url: str = "") -> None:
        self.status = status
        self.url = url
        super().__init__(f"Unexpected response code {status}" + (f" from {url}" if url else ""))


class NotFound(UpstreamError):
    def __init__(self, url: str = "") -> None:
        self.status = 404
        self.url = url
        RipperError.__init__(self, "File not found")


class UnexpectedStatus(UpstreamError):
    pass


class MalformedResponseError(RipperError):
    """The server answered, but not with what we asked for."""

    help = HELP_JSON


class UnsupportedDomain(RipperError):
    def __init__(self, domain: str) -> None:
        self.domain = domain
        super().__init__(f"Unsupported domain '{domain}'")


class ExternalToolError(RipperError):
    """Merging streams with an external program failed."""

    help = HELP_FFMPEG


class ExternalToolMissing(ExternalToolError):
    help = "If you are using '--vreddit-mode ffmpeg' you have to have a local copy of the program."


class OutputDirectoryError(RipperError):
    exit_code = 1
