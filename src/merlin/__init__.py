"""Personal task dashboard client with an AI tool-calling assistant."""

__version__ = "0.1.0"
