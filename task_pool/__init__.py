"""Task Pool: shared work distribution with claims, handoffs and routing."""

__version__ = "1.0.0"
