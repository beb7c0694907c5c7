"""
S3 administration tooling.

Cosigned administrative calls against Administration contracts, driven by a
small program algebra and a single-threaded interpreter, plus offline
authoring and publishing of gas-laddered transactions.
"""

__version__ = "0.3.0"
