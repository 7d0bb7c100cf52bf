"""tradedocs - job pack document generation and lifecycle engine."""

__version__ = "1.0.0"
