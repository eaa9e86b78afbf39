"""dek — declarative environment setup."""

__version__ = "0.1.0"
