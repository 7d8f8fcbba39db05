"""Background coordinator for the accessibility assistant.

Owns persisted user state and brokers it between page execution contexts.
"""

__version__ = "1.0.0"
