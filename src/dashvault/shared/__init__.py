"""Shared utilities: errors, logging, constants and cache key derivation."""
