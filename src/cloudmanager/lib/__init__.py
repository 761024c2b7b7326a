"""Shared library utilities for cloudmanager."""
