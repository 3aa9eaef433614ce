from searchbroker.engines.typesense.engine import TypesenseEngine

__all__ = ["TypesenseEngine"]
