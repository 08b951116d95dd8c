"""
DOMAIN LAYER - Models, objects, attributes and relationships across layers

This layer contains:
- Entities: DataModel, DataObject, ModelObject, Attribute, relationships, ModelFamily
- Value Objects: ModelLayer, Provenance, RelationshipLevel
- Ports: storage and desired-state generator interfaces
- Exceptions: Domain-specific errors

RULES:
1. NO framework imports
2. NO I/O operations
3. Only depends on Python stdlib
"""
