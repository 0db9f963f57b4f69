"""diagstash — local persistence and retention for diagram editor sessions."""

__version__ = "0.1.0"
