"""Shared utilities for BlueprintFlow."""
