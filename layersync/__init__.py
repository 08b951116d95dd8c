"""Multi-layer data model synchronization and reconciliation."""
