"""
Core infrastructure layer.

Subsystems
----------
- ``src.core.config``: static (env) and dynamic (YAML) configuration
- ``src.core.logging``: structured logging and log context
- ``src.core.database``: async engine, sessions, transactions, ORM base
- ``src.core.event``: async EventBus
- ``src.core.validation``: input validation helpers

This package is intentionally thin: feature modules import from the
subpackages directly.
"""
