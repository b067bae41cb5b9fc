"""
Pytest Configuration and Fixtures
=================================

Purpose
-------
Shared fixtures for the progression core test suite.

Responsibilities
----------------
- Point the process at an in-memory SQLite database before ``src`` loads
- Fresh ConfigManager state (YAML defaults, no overrides) per test
- Real DatabaseService with a fresh schema per integration test
- Service factories wired to a real EventBus
- Mock EventBus / ConfigManager doubles for unit tests

Architecture Notes
------------------
- Unit tests use mocks or pure domain objects (fast, no database)
- Integration tests use ``sqlite+aiosqlite:///:memory:`` with a StaticPool;
  every ``DatabaseService.initialize()`` yields an empty database
"""

from __future__ import annotations

import os

# Must be set before any ``src`` import: Config loads from the environment
# at import time.
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_JSON", "false")
os.environ["LOG_TO_FILE"] = "false"

from typing import Any, AsyncGenerator, Dict, List, Tuple  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from src.core.config.config import Config  # noqa: E402
from src.core.config.manager import ConfigManager  # noqa: E402
from src.core.database.service import DatabaseService  # noqa: E402
from src.core.event.bus import EventBus  # noqa: E402
from src.core.logging.logger import get_logger  # noqa: E402
from src.modules.character.service import CharacterService  # noqa: E402
from src.modules.clubs.contribution_service import ClubContributionAggregator  # noqa: E402
from src.modules.clubs.membership_service import ClubMembershipService  # noqa: E402
from src.modules.match.service import MatchService  # noqa: E402
from src.modules.missions.tracker import MissionProgressTracker  # noqa: E402
from src.modules.progression.settlement_service import SettlementEngine  # noqa: E402


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def config_manager():
    """
    YAML defaults from the repository ``config/`` directory, no overrides.

    Scope: function (autouse, so overrides never leak between tests)
    """
    ConfigManager.reset()
    ConfigManager.initialize(Config.CONFIG_DIR)
    yield ConfigManager
    ConfigManager.clear_overrides()
    ConfigManager.reset()


# ============================================================================
# DATABASE FIXTURES (Integration Tests)
# ============================================================================


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[type[DatabaseService], None]:
    """
    Real DatabaseService over an empty in-memory SQLite schema.

    Scope: function (clean slate per test)
    """
    await DatabaseService.initialize("sqlite+aiosqlite:///:memory:")
    await DatabaseService.create_schema()
    yield DatabaseService
    await DatabaseService.shutdown()


# ============================================================================
# EVENT FIXTURES
# ============================================================================


class EventRecorder:
    """Collects ``(event_name, payload)`` pairs published on a real bus."""

    def __init__(self, bus: EventBus) -> None:
        self.bus = bus
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def watch(self, *event_names: str) -> "EventRecorder":
        for name in event_names:
            self.bus.subscribe(name, self._listener_for(name), identifier=f"recorder@{name}")
        return self

    def _listener_for(self, name: str):
        def record(payload: Dict[str, Any]) -> None:
            self.events.append((name, payload))

        return record

    def named(self, event_name: str) -> List[Dict[str, Any]]:
        return [payload for name, payload in self.events if name == event_name]


@pytest.fixture
def event_bus(config_manager) -> EventBus:
    return EventBus(config_manager)


@pytest.fixture
def recorder(event_bus) -> EventRecorder:
    return EventRecorder(event_bus).watch(
        "progression.settled",
        "progression.level_up",
        "character.created",
        "character.trained",
        "character.skill_allocated",
        "match.finished",
        "mission.progressed",
        "mission.completed",
        "club.contribution_added",
        "club.weekly_reset",
        "club.member_joined",
        "club.member_left",
        "club.member_role_changed",
    )


# ============================================================================
# MOCK FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    Uses: Unit tests that need to assert on event publishing
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock()
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def mock_config_manager(mocker):
    """
    Mock ConfigManager returning each key's default.

    Scope: function
    """
    mock_config = mocker.MagicMock()
    mock_config.get = mocker.MagicMock(side_effect=lambda key, default=None: default)
    return mock_config


# ============================================================================
# SERVICE FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture
def settlement_engine(config_manager, event_bus) -> SettlementEngine:
    return SettlementEngine(config_manager, event_bus, get_logger("tests.settlement"))


@pytest.fixture
def character_service(
    config_manager, event_bus, settlement_engine, mission_tracker
) -> CharacterService:
    return CharacterService(
        config_manager,
        event_bus,
        get_logger("tests.character"),
        settlement_engine,
        mission_tracker,
    )


@pytest.fixture
def mission_tracker(config_manager, event_bus, settlement_engine) -> MissionProgressTracker:
    return MissionProgressTracker(
        config_manager, event_bus, get_logger("tests.missions"), settlement_engine
    )


@pytest.fixture
def membership_service(config_manager, event_bus) -> ClubMembershipService:
    return ClubMembershipService(config_manager, event_bus, get_logger("tests.clubs"))


@pytest.fixture
def contribution_aggregator(config_manager, event_bus) -> ClubContributionAggregator:
    return ClubContributionAggregator(config_manager, event_bus, get_logger("tests.contributions"))


@pytest.fixture
def match_service(
    config_manager, event_bus, settlement_engine, mission_tracker
) -> MatchService:
    return MatchService(
        config_manager,
        event_bus,
        get_logger("tests.match"),
        settlement_engine,
        mission_tracker,
    )


@pytest.fixture
def make_character(database, character_service):
    """
    Factory creating persisted characters.

    Usage:
        hero = await make_character("Hero")
    """

    async def _make(nickname: str, **kwargs: Any) -> Dict[str, Any]:
        return await character_service.create_character(nickname, **kwargs)

    return _make


# ============================================================================
# TEST DOUBLES
# ============================================================================


class StubRandom:
    """Deterministic RandomSource: fixed ``randint`` and ``random`` values."""

    def __init__(self, base: int = 2, roll: float = 0.0, pick: int = 0) -> None:
        self.base = base
        self.roll = roll
        self.pick = pick

    def randint(self, a: int, b: int) -> int:
        return max(a, min(b, self.base))

    def random(self) -> float:
        return self.roll

    def choice(self, seq):
        return seq[self.pick % len(seq)]


@pytest.fixture
def stub_random() -> StubRandom:
    return StubRandom()
