from .character import STAT_COLUMNS, Character
from .wallet import Wallet

__all__ = ["Character", "Wallet", "STAT_COLUMNS"]
