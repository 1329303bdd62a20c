"""Configuration loading and module discovery."""
