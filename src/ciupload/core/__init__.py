"""Core functionality for ciupload."""
