from .mission import Mission
from .mission_progress import MissionProgress
from .settlement_record import SettlementRecord

__all__ = ["Mission", "MissionProgress", "SettlementRecord"]
