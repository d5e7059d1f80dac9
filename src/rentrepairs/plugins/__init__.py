"""Extension layer: plugin system via pluggy.

Discovery: entry points (pip-installed) plus single-file local plugins.
INVARIANT: Plugin failures are warnings, never errors.
"""

from rentrepairs.plugins.event_bus import EventBus
from rentrepairs.plugins.manager import PluginManager

__all__ = ["EventBus", "PluginManager"]
