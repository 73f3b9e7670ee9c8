"""FlipLedger: Grand Exchange flip economics and screenshot import."""

__version__ = "0.1.0"
