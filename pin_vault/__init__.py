"""PIN-protected file encryption front end around an external vault backend."""

__version__ = "0.1.0"
