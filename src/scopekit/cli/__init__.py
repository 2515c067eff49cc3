"""Command-line interface for scopekit."""
