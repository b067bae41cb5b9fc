"""
Configuration subsystem.

- **config.py**: static configuration from environment variables (.env support)
- **manager.py**: dynamic balance configuration from YAML with overrides
- **errors.py**: configuration exception hierarchy

Usage
-----
```python
from src.core.config import Config, ConfigManager

url = Config.DATABASE_URL
points = ConfigManager.get("progression.points_per_level", 5)
```
"""

from src.core.config.config import Config, Environment
from src.core.config.errors import (
    ConfigError,
    ConfigInitializationError,
    ConfigValidationError,
)
from src.core.config.manager import ConfigManager

__all__ = [
    "Config",
    "Environment",
    "ConfigManager",
    "ConfigError",
    "ConfigInitializationError",
    "ConfigValidationError",
]
