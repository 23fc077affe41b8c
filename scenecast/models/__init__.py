"""Data models for the scene video pipeline."""
