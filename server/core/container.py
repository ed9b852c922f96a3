"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from services.execution.recorder import InMemoryRecorder
from services.node_executor import NodeExecutor
from services.transforms import TransformRegistry
from services.workflow import WorkflowService


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Execution history (kept in process memory)
    recorder = providers.Singleton(
        InMemoryRecorder,
        history_limit=settings.provided.execution_history_limit,
    )

    transforms = providers.Singleton(
        TransformRegistry
    )

    # Step invoker
    node_executor = providers.Singleton(
        NodeExecutor,
        settings=settings,
    )

    workflow_service = providers.Singleton(
        WorkflowService,
        settings=settings,
        node_executor=node_executor,
        recorder=recorder,
        transforms=transforms,
    )


# Global container instance
container = Container()
