"""Top-level operations exposed to the CLI."""
