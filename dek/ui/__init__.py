"""User interface — console output and the click CLI."""
