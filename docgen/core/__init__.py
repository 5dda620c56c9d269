"""Core configuration, exceptions and logging for docgen."""
