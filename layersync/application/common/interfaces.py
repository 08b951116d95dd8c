"""
Base interfaces for CQRS pattern.

Usage:
    @dataclass(frozen=True)
    class DeleteObjectCascadeCommand(Command[DeleteObjectResult]):
        object_id: int

    class DeleteObjectCascadeHandler(CommandHandler[DeleteObjectResult]):
        def __init__(self, orchestrator: CascadeOrchestrator):
            self._orchestrator = orchestrator

        async def execute(self, command: DeleteObjectCascadeCommand) -> DeleteObjectResult:
            return await self._orchestrator.delete_object_cascade(command.object_id)
"""
from abc import ABC, abstractmethod
from typing import TypeVar, Generic

T = TypeVar("T")
class Command(ABC, Generic[T]):
    """Base class for write operations"""
    pass

class CommandHandler(ABC, Generic[T]):
    @abstractmethod
    async def execute(self, command: Command[T]) -> T:
        """Execute the command and return a result of type T"""
        ...

class Query(ABC, Generic[T]):
    """Base class for read operations"""
    pass

class QueryHandler(ABC, Generic[T]):
    @abstractmethod
    async def execute(self, query: Query[T]) -> T:
        """Execute the query and return a result of type T"""
        ...
