"""Flowsmith Runtime - Support library bundled into generated workflow handlers."""
