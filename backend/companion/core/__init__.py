"""Core module - session lifecycle, derived-content generation and shared plumbing."""
