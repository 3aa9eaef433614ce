"""Base engine interface — capability contract and broker."""

from searchbroker.engines.base.broker import Broker, EngineKind
from searchbroker.engines.base.engine import SearchEngine

__all__ = ["Broker", "EngineKind", "SearchEngine"]
