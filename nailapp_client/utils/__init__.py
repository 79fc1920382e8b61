"""Shared utilities: transport adapter, error normalization and logging."""
