"""Core domain: models, engine, configuration, persistence."""
