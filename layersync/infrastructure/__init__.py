"""
INFRASTRUCTURE LAYER - Port implementations

- persistence/ → ModelingStorage (in-memory, Prisma)
- llm/         → DesiredStateGenerator (OpenAI)
"""
