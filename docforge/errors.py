"""Exception types raised by the docforge pipeline."""

from __future__ import annotations


class DocforgeError(Exception):
    """Base class for every fatal pipeline error."""


class ConfigurationError(DocforgeError):
    """A required option is missing or malformed."""


class SourceReadError(DocforgeError, OSError):
    """The source root or one of the collected files cannot be read."""


class EmptyResultError(DocforgeError):
    """Nothing would end up in the document."""


class FetchError(DocforgeError):
    """A network retrieval failed after exhausting its retries."""


class ConversionError(DocforgeError):
    """HTML-to-Markdown or intermediate typeset conversion failed."""


class RenderError(DocforgeError):
    """The PDF engine exited non-zero or produced no output."""


class ToolMissingError(DocforgeError):
    """A required external tool is not installed."""
