"""
Character Module
================

- CharacterService: creation (with wallet), training, skill allocation
- CharacterRepository / WalletRepository: shared with the settlement engine
"""

from .repository import CharacterRepository, WalletRepository
from .service import CharacterService, character_record, wallet_address_for

__all__ = [
    "CharacterService",
    "CharacterRepository",
    "WalletRepository",
    "character_record",
    "wallet_address_for",
]
