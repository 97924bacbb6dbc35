"""Shared utilities: transforms, frames, errors and logging."""
