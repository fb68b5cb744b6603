"""Score oracle: signs game-score claims for the on-chain tournament contract."""

__version__ = "0.1.0"
