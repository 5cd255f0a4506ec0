"""Remote execution and auto-remediation engine for deployment agents."""

__version__ = "0.1.0"
