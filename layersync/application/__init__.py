"""
APPLICATION LAYER - Use Cases & Orchestration

This layer contains:
- commands/  → Write operations (CQRS)
- queries/   → Read operations (CQRS)
- services/  → Synchronization engine (resolver, replicator, synchronizer,
               cascade orchestrator, desired-state reconciler)
- dto/       → Data Transfer Objects
- common/    → Shared interfaces (Command, Query base classes)

Rules:
- Depends on Domain layer only
- Coordinates entities, storage, external services
"""
