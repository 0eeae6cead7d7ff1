"""Dependency injection container for the application."""

from dependency_injector import containers, providers

from core.config import Settings
from core.database import Database
from core.cleanup import CleanupService
from services.execution import JobQueue, RunStateMachine
from services.node_executor import NodeExecutor
from services.scheduler import WorkflowScheduler
from services.workflow import WorkflowService


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    # Settings
    settings = providers.Singleton(
        Settings,
    )

    # Database
    database = providers.Singleton(
        Database,
        settings=settings
    )

    # Execution engine
    node_executor = providers.Singleton(
        NodeExecutor,
        settings=settings
    )

    runner = providers.Singleton(
        RunStateMachine,
        node_executor=node_executor
    )

    job_queue = providers.Singleton(
        JobQueue,
        idle_gap=settings.provided.queue_idle_gap,
        result_retention=settings.provided.job_result_retention
    )

    # Services
    workflow_service = providers.Singleton(
        WorkflowService,
        database=database,
        job_queue=job_queue,
        runner=runner,
        settings=settings
    )

    scheduler = providers.Singleton(
        WorkflowScheduler,
        database=database,
        workflow_service=workflow_service,
        interval_seconds=settings.provided.scheduler_interval
    )

    cleanup = providers.Singleton(
        CleanupService,
        job_queue=job_queue,
        settings=settings
    )


# Global container instance
container = Container()
