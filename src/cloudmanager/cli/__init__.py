"""Command line interface for cloudmanager."""
