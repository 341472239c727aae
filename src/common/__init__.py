"""Shared helpers (logging, errors) used across bundlefree packages."""
