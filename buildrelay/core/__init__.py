"""Core modules for buildrelay."""
