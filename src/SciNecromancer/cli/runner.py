"""Command runner for coordinating CLI execution.

Manages component lifecycle, resource cleanup, logging configuration,
and error handling for command execution.
"""

from __future__ import annotations

from typing import Callable, TypeVar

import click

from SciNecromancer.config import AppConfig
from SciNecromancer.core.errors import GenerationFailure, RecordNotFoundError, RecordValidationError
from SciNecromancer.core.models import ProviderName
from SciNecromancer.llm import create_dispatcher
from SciNecromancer.llm.dispatcher import ProviderFallbackDispatcher
from SciNecromancer.services import ConnectivityState, ErrorLog, Notifier, create_error_log
from SciNecromancer.storage import DatabaseManager, LocalRecordStore, PendingSyncQueue, create_storage
from SciNecromancer.sync import SyncCoordinator, create_sync_coordinator
from SciNecromancer.utils.log import configure_logging, log

T = TypeVar("T")


class AppContext:
    """Components shared by one command invocation.

    The dispatcher and the sync coordinator are built on first use so that
    commands which do not need them never touch the network.
    """

    def __init__(
        self,
        config: AppConfig,
        db_manager: DatabaseManager,
        local: LocalRecordStore,
        queue: PendingSyncQueue,
        *,
        provider: ProviderName | None = None,
    ) -> None:
        self.config = config
        self.db_manager = db_manager
        self.local = local
        self.queue = queue
        self.provider = provider
        self.connectivity = ConnectivityState()
        self.notifier = Notifier()
        self.error_log: ErrorLog = create_error_log(config, db_manager)
        self._dispatcher: ProviderFallbackDispatcher | None = None
        self._coordinator: SyncCoordinator | None = None

    @property
    def dispatcher(self) -> ProviderFallbackDispatcher:
        if self._dispatcher is None:
            self._dispatcher = create_dispatcher(
                self.config, connectivity=self.connectivity, error_log=self.error_log
            )
            if self.provider is not None and self.provider is not self._dispatcher.primary:
                self._dispatcher.switch_provider(self.provider)
        return self._dispatcher

    @property
    def coordinator(self) -> SyncCoordinator:
        if self._coordinator is None:
            self._coordinator = create_sync_coordinator(
                self.config, self.local, self.queue, self.connectivity, self.notifier
            )
        return self._coordinator


class CommandRunner:
    """Orchestrates command execution with proper resource management.

    Handles logging configuration, component creation, database context
    management, and error handling for CLI commands.
    """

    def __init__(self, config: AppConfig, *, provider: ProviderName | None = None) -> None:
        """Initialize command runner.

        Args:
            config: Application configuration.
            provider: Provider to use as primary instead of the configured one.
        """
        self.config = config
        self.provider = provider

    def run(self, action: str, body: Callable[[AppContext], T]) -> T:
        """Execute one command body with full resource management.

        Args:
            action: The CLI command name (e.g., 'analyze').
            body: Work to perform with the shared components.

        Returns:
            Whatever ``body`` returns.

        Raises:
            click.ClickException: On an expected failure (printed without traceback).
            click.Abort: On an unexpected failure.
        """
        log_path = configure_logging(
            level=self.config.runtime.level,
            action=action,
            log_to_file=self.config.runtime.to_file,
            log_dir=self.config.runtime.dir,
        )
        if log_path is not None:
            log.debug("Logging %s to %s", action, log_path)
        try:
            db_manager, local, queue = create_storage(self.config)
            with db_manager:
                context = AppContext(self.config, db_manager, local, queue, provider=self.provider)
                return body(context)
        except click.ClickException:
            raise
        except (GenerationFailure, RecordNotFoundError, RecordValidationError, ValueError, OSError) as e:
            log.debug("%s failed: %r", action, e)
            raise click.ClickException(str(e)) from e
        except Exception as e:  # noqa: BLE001 - cli boundary
            log.error("%s failed: %s", action, e)
            raise click.Abort from e
