"""Configuration — YAML loading and translation into Items."""
