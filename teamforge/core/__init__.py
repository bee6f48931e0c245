"""Core shared types and helpers."""
