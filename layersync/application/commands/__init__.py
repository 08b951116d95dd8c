"""
COMMANDS - Write operations (CQRS)

Each command has:
- Command class: frozen dataclass with the request parameters
- Handler class: executes the write through the synchronization services

Subfolders:
- objects/       → create_object (cascade), delete_object (cascade)
- relationships/ → create, update, delete relationship
- models/        → create_model_family
- agent/         → run_modeling_agent
"""
