"""Orchestration engine — registry, resolver, staging, reconciliation."""
