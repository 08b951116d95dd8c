"""
Dishka DI Container Setup.

- Storage, the family lock registry and the LLM generator are app-scoped
  (one instance shared by every request; locks only work when shared)
- Services and handlers are request-scoped
- STORAGE_BACKEND picks the ModelingStorage implementation ("memory" or "prisma")

Usage:
    container = await create_container()
    async with container() as request_container:
        handler = await request_container.get(CreateObjectWithCascadeHandler)
        result = await handler.execute(command)
    await container.close()
"""

import logging
from typing import AsyncIterable, Optional

from dishka import AsyncContainer, Provider, Scope, make_async_container, provide
from openai import AsyncOpenAI

from layersync.application.commands.agent import RunModelingAgentHandler
from layersync.application.commands.models import CreateModelFamilyHandler
from layersync.application.commands.objects import (
    CreateObjectWithCascadeHandler,
    DeleteObjectCascadeHandler,
)
from layersync.application.commands.relationships import (
    CreateRelationshipHandler,
    DeleteRelationshipHandler,
    UpdateRelationshipHandler,
)
from layersync.application.queries.models import GetModelFamilyHandler
from layersync.application.services import (
    BatchPopulationService,
    CascadeOrchestrator,
    DesiredStateReconciler,
    FamilyLockRegistry,
    FamilyResolver,
    LayerReplicator,
    RelationshipSynchronizer,
)
from layersync.config.settings import Config
from layersync.domain.ports.desired_state_generator import DesiredStateGenerator
from layersync.domain.ports.repositories import ModelingStorage
from layersync.infrastructure.llm import OpenAIDesiredStateGenerator
from layersync.infrastructure.persistence import (
    InMemoryModelingStorage,
    PrismaModelingStorage,
)
from layersync.services.llm_client import default_timeout

logger = logging.getLogger(__name__)


class AppProvider(Provider):
    """
    Application dependency provider.

    Registers all dependencies and their implementations.
    """

    def __init__(self, storage_backend: Optional[str] = None):
        super().__init__()
        self._storage_backend = (storage_backend or Config.STORAGE_BACKEND).lower()

    # ==================== STORAGE ====================
    @provide(scope=Scope.APP)
    async def get_storage(self) -> AsyncIterable[ModelingStorage]:
        """
        Provide ModelingStorage (singleton, app-scoped).

        - "memory": process-local tables, lost on shutdown
        - "prisma": connected at startup, disconnected when the container closes
        """
        if self._storage_backend == "memory":
            logger.info("[Container] Using in-memory modeling storage")
            yield InMemoryModelingStorage()
            return
        if self._storage_backend != "prisma":
            raise ValueError(f"Unknown STORAGE_BACKEND: {self._storage_backend}")

        from prisma import Prisma

        prisma = Prisma()
        await prisma.connect()
        logger.info("[Container] Connected Prisma modeling storage")
        try:
            yield PrismaModelingStorage(prisma)
        finally:
            await prisma.disconnect()

    @provide(scope=Scope.APP)
    def get_family_locks(self) -> FamilyLockRegistry:
        return FamilyLockRegistry()

    # ==================== LLM ====================
    @provide(scope=Scope.APP)
    def get_desired_state_generator(self) -> DesiredStateGenerator:
        client = None
        if Config.OPENAI_KEY:
            client = AsyncOpenAI(
                api_key=Config.OPENAI_KEY,
                max_retries=Config.LLM_MAX_RETRIES,
                timeout=default_timeout(),
            )
        else:
            logger.warning("[Container] OPENAI_API_KEY not set, modeling agent calls will fail")
        return OpenAIDesiredStateGenerator(client)

    # ==================== SERVICES ====================
    @provide(scope=Scope.REQUEST)
    def get_family_resolver(self, storage: ModelingStorage) -> FamilyResolver:
        return FamilyResolver(storage)

    @provide(scope=Scope.REQUEST)
    def get_layer_replicator(self, storage: ModelingStorage) -> LayerReplicator:
        return LayerReplicator(storage)

    @provide(scope=Scope.REQUEST)
    def get_relationship_synchronizer(
        self, storage: ModelingStorage, resolver: FamilyResolver
    ) -> RelationshipSynchronizer:
        return RelationshipSynchronizer(storage, resolver)

    @provide(scope=Scope.REQUEST)
    def get_cascade_orchestrator(
        self,
        storage: ModelingStorage,
        resolver: FamilyResolver,
        replicator: LayerReplicator,
        synchronizer: RelationshipSynchronizer,
        locks: FamilyLockRegistry,
    ) -> CascadeOrchestrator:
        return CascadeOrchestrator(storage, resolver, replicator, synchronizer, locks)

    @provide(scope=Scope.REQUEST)
    def get_batch_population(self, storage: ModelingStorage) -> BatchPopulationService:
        return BatchPopulationService(storage)

    @provide(scope=Scope.REQUEST)
    def get_reconciler(
        self,
        storage: ModelingStorage,
        resolver: FamilyResolver,
        synchronizer: RelationshipSynchronizer,
        generator: DesiredStateGenerator,
        locks: FamilyLockRegistry,
    ) -> DesiredStateReconciler:
        return DesiredStateReconciler(storage, resolver, synchronizer, generator, locks)

    # ==================== HANDLERS ====================
    @provide(scope=Scope.REQUEST)
    def get_create_object_handler(
        self, orchestrator: CascadeOrchestrator
    ) -> CreateObjectWithCascadeHandler:
        return CreateObjectWithCascadeHandler(orchestrator)

    @provide(scope=Scope.REQUEST)
    def get_delete_object_handler(
        self, orchestrator: CascadeOrchestrator
    ) -> DeleteObjectCascadeHandler:
        return DeleteObjectCascadeHandler(orchestrator)

    @provide(scope=Scope.REQUEST)
    def get_create_relationship_handler(
        self,
        storage: ModelingStorage,
        resolver: FamilyResolver,
        synchronizer: RelationshipSynchronizer,
        locks: FamilyLockRegistry,
    ) -> CreateRelationshipHandler:
        return CreateRelationshipHandler(storage, resolver, synchronizer, locks)

    @provide(scope=Scope.REQUEST)
    def get_update_relationship_handler(
        self,
        storage: ModelingStorage,
        resolver: FamilyResolver,
        synchronizer: RelationshipSynchronizer,
        locks: FamilyLockRegistry,
    ) -> UpdateRelationshipHandler:
        return UpdateRelationshipHandler(storage, resolver, synchronizer, locks)

    @provide(scope=Scope.REQUEST)
    def get_delete_relationship_handler(
        self,
        storage: ModelingStorage,
        resolver: FamilyResolver,
        synchronizer: RelationshipSynchronizer,
        locks: FamilyLockRegistry,
    ) -> DeleteRelationshipHandler:
        return DeleteRelationshipHandler(storage, resolver, synchronizer, locks)

    @provide(scope=Scope.REQUEST)
    def get_create_model_family_handler(
        self,
        storage: ModelingStorage,
        population: BatchPopulationService,
        locks: FamilyLockRegistry,
    ) -> CreateModelFamilyHandler:
        return CreateModelFamilyHandler(storage, population, locks)

    @provide(scope=Scope.REQUEST)
    def get_run_modeling_agent_handler(
        self, reconciler: DesiredStateReconciler
    ) -> RunModelingAgentHandler:
        return RunModelingAgentHandler(reconciler)

    @provide(scope=Scope.REQUEST)
    def get_model_family_handler(self, resolver: FamilyResolver) -> GetModelFamilyHandler:
        return GetModelFamilyHandler(resolver)


async def create_container(storage_backend: Optional[str] = None) -> AsyncContainer:
    """
    Create and configure the DI container.

    - make_async_container() creates the container with all providers
    - Call this ONCE at startup and close() it on shutdown
    """
    return make_async_container(AppProvider(storage_backend))
