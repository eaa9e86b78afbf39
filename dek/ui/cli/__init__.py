"""CLI command modules registered on the root group in dek.main."""
