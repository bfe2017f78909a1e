"""Chronicle: an editor that continues your writing with AI."""

__version__ = "0.1.0"
