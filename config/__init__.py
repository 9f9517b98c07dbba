"""Configuration settings and loading."""
