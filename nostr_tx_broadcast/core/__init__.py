"""Shared building blocks: models, settings, errors, logging."""
