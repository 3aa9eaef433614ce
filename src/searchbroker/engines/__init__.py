"""Search engine layer — Pluggable full-text backends and the broker.

Built-in engines:
  - elasticsearch: Elasticsearch v8+ over its REST API
  - typesense: Typesense v0.25+ over its REST API

Subclass ``SearchEngine`` to connect your own backend and register it with
``Broker.register_engine``.
"""
