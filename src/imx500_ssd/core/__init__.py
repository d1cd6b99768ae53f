"""Core decoding, detection and entity packages."""
