"""Witness Toolkit - Ethereum storage witnesses for balances and ownership."""

__version__ = "1.0.0"

from .proofs import WitnessManager
from .shared.config import WitnessConfig

__all__ = ["WitnessManager", "WitnessConfig"]
