"""stat-edge: statistics-driven over/under selection engine."""

from stat_edge.core.engine_config import EngineConfig
from stat_edge.selection_engine import FixtureAnalysis, SelectionEngine

__version__ = "1.0.0"

__all__ = ["EngineConfig", "FixtureAnalysis", "SelectionEngine", "__version__"]
