"""SearchBroker — Search backend coordination and channel-type backfill."""

__version__ = "0.1.0"
