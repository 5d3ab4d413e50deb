"""Element handlers registered by the ESI processor."""
