"""Poll commerce orders and forward new ones to a downstream endpoint."""

__version__ = "1.0.0"
