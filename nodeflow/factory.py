"""Application factory for creating FastAPI instances."""

from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI

from .config import AppConfig, HistoryBackend, get_config
from .core.logging import setup_logging, get_logger, set_logging_context, clear_logging_context
from .core.execution_engine import ExecutionEngine
from .core.node_registry import NodeTypeRegistry, create_default_registry
from .core.run_history import InMemoryRunHistory, RunHistoryStore, SqlRunHistory
from .api.endpoints import router, init_dependencies
from .storage.database import reset_engine_cache


class ApplicationState:
    """Container for application state and components."""

    def __init__(self):
        self.config: Optional[AppConfig] = None
        self.node_registry: Optional[NodeTypeRegistry] = None
        self.run_history: Optional[RunHistoryStore] = None
        self.execution_engine: Optional[ExecutionEngine] = None


# Global application state
app_state = ApplicationState()


def create_run_history(config: AppConfig) -> RunHistoryStore:
    """Run history store selected by ``history_backend``."""
    if config.history_backend == HistoryBackend.SQL:
        return SqlRunHistory(config.database_url, echo=config.database_echo)
    return InMemoryRunHistory()


def initialize_core_components(
    config: AppConfig,
    node_registry: Optional[NodeTypeRegistry] = None,
    run_history: Optional[RunHistoryStore] = None,
) -> ExecutionEngine:
    """Build the registry, history store and engine, and wire them into the API."""
    logger = get_logger(__name__)

    node_registry = node_registry or create_default_registry(config=config)
    run_history = run_history if run_history is not None else create_run_history(config)
    execution_engine = ExecutionEngine(
        registry=node_registry,
        history=run_history,
        node_timeout=config.node_timeout,
        max_concurrent_runs=config.max_concurrent_runs,
    )

    app_state.config = config
    app_state.node_registry = node_registry
    app_state.run_history = run_history
    app_state.execution_engine = execution_engine

    init_dependencies(
        execution_engine=execution_engine,
        node_registry=node_registry,
        run_history=run_history,
    )

    logger.info(
        f"Core components initialized: {len(node_registry.list_types())} node types, "
        f"{config.history_backend.value} run history"
    )
    return execution_engine


def graceful_shutdown() -> None:
    """Release database engines held by the application."""
    logger = get_logger(__name__)
    logger.info("Shutting down nodeflow")

    for run_id in app_state.execution_engine.get_active_runs() if app_state.execution_engine else []:
        app_state.execution_engine.cancel_run(run_id)

    if isinstance(app_state.run_history, SqlRunHistory):
        app_state.run_history.dispose()
    reset_engine_cache()
    clear_logging_context()


def create_app(
    config: Optional[AppConfig] = None,
    node_registry: Optional[NodeTypeRegistry] = None,
    run_history: Optional[RunHistoryStore] = None,
) -> FastAPI:
    """
    Create and configure a FastAPI application instance.

    Args:
        config: Application configuration; loaded from the environment when omitted
        node_registry: Registry to use instead of the default one
        run_history: History store to use instead of the configured backend
    """
    if config is None:
        config = get_config()

    setup_logging(
        level=config.log_level.value,
        log_file=config.log_file,
        log_format=config.log_format,
        structured=config.structured_logging,
        max_size=config.log_max_size,
        backup_count=config.log_backup_count
    )
    set_logging_context(service=config.app_name)
    logger = get_logger(__name__)

    initialize_core_components(config, node_registry, run_history)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {config.app_name} v{config.app_version}")
        yield
        graceful_shutdown()

    app = FastAPI(
        title=config.app_name,
        description="Workflow execution engine for trading automation pipelines",
        version=config.app_version,
        debug=config.debug,
        lifespan=lifespan
    )

    app.include_router(router)
    add_health_endpoints(app, config)

    return app


def add_health_endpoints(app: FastAPI, config: AppConfig) -> None:
    """Add health check endpoints to the application."""

    @app.get("/")
    async def root():
        """Root endpoint for basic health check."""
        return {"message": f"{config.app_name} is running", "version": config.app_version}

    @app.get("/health")
    async def health_check():
        """Basic health check endpoint."""
        engine = app_state.execution_engine
        return {
            "status": "healthy",
            "service": config.app_name.lower().replace(" ", "-"),
            "version": config.app_version,
            "active_runs": len(engine.get_active_runs()) if engine else 0,
        }
