"""Poll for pending jobs, run them, and record the outcome."""

__version__ = "1.0.0"
