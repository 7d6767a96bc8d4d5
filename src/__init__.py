"""askpipe: command-line assistant with resumable conversations."""

from askpipe.version import __version__

__all__ = ["__version__"]
