"""Run orchestrator: sequences one logset run through the fixed pipeline.

Stage order (``PIPELINE_STAGES``)::

    load_plugins -> resolve_identity -> [start_local_store] -> extract
    -> check_status -> ingest (or reuse) -> validate -> analyze -> summarize
    -> teardown -> [stop_local_store]

A failing stage ends the run with ``RunResult.error``. Once the fingerprint is
known, resources are held in an ``ExitStack``: the local store is stopped and
teardown runs on every exit path, cancellation and fatal errors included.
Cleanup problems never fail a run; they come back as
``RunResult.cleanup_failures``.

Example:
    >>> orchestrator = RunOrchestrator.from_config(config)
    >>> orchestrator.initialize()
    >>> result = orchestrator.execute(RunRequest.create("logs.zip", config))
    >>> result.succeeded
    True
"""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional

from .cancellation import CancellationToken
from .config import LogsieveConfig
from .exceptions import CleanupFailure, ErrorCode, LogsieveError
from .extraction import LogsetExtractor
from .identity import HashIdentityResolver
from .ingestion import StoreWriter
from .logging_config import get_logger
from .models import LogsetStatus, RunContext, RunRequest, RunState
from .plugins import PluginExecutor, PluginLoader
from .protocols import (
    AnalysisExecutor,
    Extractor,
    IdentityResolver,
    LocalStoreManager,
    LogsetWriter,
    PluginSelector,
    StatusChecker,
    Validator,
)
from .publishing import ReportPublisher
from .store import LocalStoreProcessManager, LogsetMetadataWriter, LogsetStatusChecker, StoreAdmin
from .summary import RunSummary, RunSummaryReporter
from .teardown import TeardownCoordinator, log_cleanup_failure
from .validation import LogsetValidator, assert_non_empty

logger = get_logger(__name__)


class Stage(Enum):
    LOAD_PLUGINS = "load_plugins"
    RESOLVE_IDENTITY = "resolve_identity"
    START_LOCAL_STORE = "start_local_store"
    EXTRACT = "extract"
    CHECK_STATUS = "check_status"
    INGEST = "ingest"
    VALIDATE = "validate"
    ANALYZE = "analyze"
    SUMMARIZE = "summarize"
    TEARDOWN = "teardown"
    STOP_LOCAL_STORE = "stop_local_store"


PIPELINE_STAGES = tuple(Stage)


@dataclass(frozen=True)
class StageResult:
    """Outcome of one stage: a value, or the error that ends the run."""

    stage: Stage
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RunResult:
    context: RunContext
    summary: Optional[RunSummary] = None
    error: Optional[BaseException] = None
    failed_stage: Optional[Stage] = None
    cleanup_failures: List[CleanupFailure] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


LocalStoreFactory = Callable[[RunRequest], LocalStoreManager]


def default_local_store(request: RunRequest) -> LocalStoreManager:
    return LocalStoreProcessManager(request.local_store, request.config.local_store_root)


@dataclass
class Collaborators:
    """Everything the orchestrator calls out to; swap any of them in tests."""

    plugin_loader: PluginSelector
    identity_resolver: IdentityResolver
    extractor: Extractor
    status_checker: StatusChecker
    writer: LogsetWriter
    validator: Validator
    executor: AnalysisExecutor
    reporter: RunSummaryReporter
    teardown: TeardownCoordinator
    local_store_factory: LocalStoreFactory = default_local_store

    @classmethod
    def default(cls, config: LogsieveConfig) -> Collaborators:
        publisher = ReportPublisher(config)
        executor = PluginExecutor(config, publisher)
        extractor = LogsetExtractor(config)
        metadata_writer = LogsetMetadataWriter()
        return cls(
            plugin_loader=PluginLoader(),
            identity_resolver=HashIdentityResolver(config.download_timeout_seconds),
            extractor=extractor,
            status_checker=LogsetStatusChecker(),
            writer=StoreWriter(config, metadata_writer),
            validator=LogsetValidator(),
            executor=executor,
            reporter=RunSummaryReporter(
                executor.output_location,
                config.plugin_output_database,
                publisher.build_summary,
            ),
            teardown=TeardownCoordinator(extractor, StoreAdmin(), metadata_writer),
        )


class RunOrchestrator:
    """Runs logsets through the pipeline, one run at a time."""

    def __init__(self, collaborators: Collaborators) -> None:
        self.collaborators = collaborators
        self._initialized = False

    @classmethod
    def from_config(cls, config: LogsieveConfig) -> RunOrchestrator:
        return cls(Collaborators.default(config))

    def initialize(self) -> None:
        """Purge temp state left by aborted runs. Call once per process."""
        if self._initialized:
            return
        logger.info("Initializing logsieve..")
        self.collaborators.extractor.cleanup_all()
        self._initialized = True

    def run(self, request: RunRequest, cancel_token: Optional[CancellationToken] = None) -> RunResult:
        """Like ``execute`` but re-raises the fatal error after cleanup."""
        result = self.execute(request, cancel_token)
        result.raise_for_error()
        return result

    def execute(
        self, request: RunRequest, cancel_token: Optional[CancellationToken] = None
    ) -> RunResult:
        token = cancel_token or CancellationToken()
        context = RunContext.for_request(request)
        result = RunResult(context)
        logger.info("Starting run %s for %s", request.run_id, request.target)

        # Nothing is allocated before the fingerprint is known
        for stage, action in (
            (Stage.LOAD_PLUGINS, lambda: self._load_plugins(request, context)),
            (Stage.RESOLVE_IDENTITY, lambda: self._resolve_identity(request, context)),
        ):
            outcome = self._run_stage(stage, token, action)
            if not outcome.ok:
                self._abort(result, outcome)
                return result

        with ExitStack() as stack:
            self._run_pipeline(request, context, token, stack, result)

        if result.succeeded:
            logger.info("Run %s finished.", request.run_id)
        return result

    # ── pipeline ──────────────────────────────────────────────────

    def _run_pipeline(
        self,
        request: RunRequest,
        context: RunContext,
        token: CancellationToken,
        stack: ExitStack,
        result: RunResult,
    ) -> None:
        if context.capabilities.manages_local_store:
            manager = self.collaborators.local_store_factory(request)
            stack.callback(self._stop_local_store, manager, context, result)
            outcome = self._run_stage(
                Stage.START_LOCAL_STORE, token, lambda: self._start_local_store(manager, context)
            )
            if not outcome.ok:
                self._abort(result, outcome)
                return

        stack.callback(self._teardown, request, context, result)

        for stage, action in (
            (Stage.EXTRACT, lambda: self._extract(request, context)),
            (Stage.CHECK_STATUS, lambda: self._check_status(request, context)),
            (Stage.INGEST, lambda: self._ingest_or_reuse(request, context)),
            (Stage.VALIDATE, lambda: self._validate(request, context)),
            (Stage.ANALYZE, lambda: self._analyze(request, context)),
            (Stage.SUMMARIZE, lambda: self._summarize(context, result)),
        ):
            outcome = self._run_stage(stage, token, action)
            if not outcome.ok:
                self._abort(result, outcome)
                return

    @staticmethod
    def _run_stage(stage: Stage, token: CancellationToken, action: Callable[[], Any]) -> StageResult:
        try:
            token.raise_if_cancelled(stage.value)
            value = action()
        except Exception as e:  # becomes the run's fatal error
            return StageResult(stage, error=e)
        return StageResult(stage, value=value)

    @staticmethod
    def _abort(result: RunResult, outcome: StageResult) -> None:
        error = outcome.error
        if isinstance(error, LogsieveError):
            logger.critical(
                "[%s] %s", error.code.value, error, extra={"run_error": error.to_json()}
            )
        else:
            logger.critical(
                "[%s] Unexpected error during %s: %s",
                ErrorCode.LS800.value,
                outcome.stage.value,
                error,
                exc_info=error,
            )
        result.error = error
        result.failed_stage = outcome.stage
        result.context.advance(RunState.ABORTED)

    # ── stages ────────────────────────────────────────────────────

    def _load_plugins(self, request: RunRequest, context: RunContext) -> None:
        context.plugin_types_to_execute = self.collaborators.plugin_loader.load_plugins(request)

    def _resolve_identity(self, request: RunRequest, context: RunContext) -> None:
        resolution = self.collaborators.identity_resolver.resolve(request.target)
        context.logset_hash = resolution.fingerprint
        if resolution.disable_force_reprocess:
            # A fingerprint target has no payload to reprocess
            context.force_reprocess = False
        context.advance(RunState.IDENTITY_RESOLVED)

    def _start_local_store(self, manager: LocalStoreManager, context: RunContext) -> None:
        context.store_connection = manager.start()
        logger.info("Store operations redirected to local store at %s", context.store_connection)
        context.advance(RunState.LOCAL_STORE_STARTED)

    def _extract(self, request: RunRequest, context: RunContext) -> None:
        self.collaborators.extractor.process(request, context)
        context.advance(RunState.EXTRACTED)

    def _check_status(self, request: RunRequest, context: RunContext) -> None:
        status = self.collaborators.status_checker.get_status(request, context)
        context.logset_status = status
        logger.debug("Logset %s status: %s", context.logset_hash, status.value)
        context.advance(RunState.STATUS_CHECKED)

    def _ingest_or_reuse(self, request: RunRequest, context: RunContext) -> None:
        processed = context.logset_status is LogsetStatus.PROCESSED
        if processed and not context.force_reprocess:
            logger.info(
                "Logset %s has already been processed; reusing database %s.",
                context.logset_hash,
                context.database_name,
            )
            context.mark_reused_existing()
            context.advance(RunState.SKIPPED)
            return

        if processed:
            logger.info("Force-reprocessing logset %s.", context.logset_hash)
        if context.logset_status is not LogsetStatus.NON_EXISTENT:
            # Records from an earlier pass would otherwise be counted twice
            self.collaborators.writer.reset_logset(request, context)
        self.collaborators.writer.process_logset(request, context)
        context.advance(RunState.INGESTED)

    def _validate(self, request: RunRequest, context: RunContext) -> None:
        assert_non_empty(self.collaborators.validator, request, context)
        context.advance(RunState.VALIDATED)

    def _analyze(self, request: RunRequest, context: RunContext) -> None:
        outcomes = self.collaborators.executor.execute_plugins(request, context)
        context.plugin_outcomes = list(outcomes)
        context.advance(RunState.ANALYZED)

    def _summarize(self, context: RunContext, result: RunResult) -> None:
        reporter = self.collaborators.reporter
        result.summary = reporter.summarize(context)
        reporter.display(result.summary)
        context.advance(RunState.SUMMARIZED)

    # ── cleanup (registered on the ExitStack, never raise) ────────

    def _teardown(self, request: RunRequest, context: RunContext, result: RunResult) -> None:
        try:
            failures = self.collaborators.teardown.teardown(request, context)
        except Exception as e:  # teardown never fails a run
            failures = [CleanupFailure(Stage.TEARDOWN.value, ErrorCode.LS800, e)]
            log_cleanup_failure(failures[0])
        result.cleanup_failures.extend(failures)

    @staticmethod
    def _stop_local_store(manager: LocalStoreManager, context: RunContext, result: RunResult) -> None:
        try:
            was_running = manager.is_running()
            manager.stop()
        except Exception as e:  # teardown never fails a run
            failure = CleanupFailure(Stage.STOP_LOCAL_STORE.value, ErrorCode.LS903, e)
            log_cleanup_failure(failure)
            result.cleanup_failures.append(failure)
            return
        if was_running:
            context.advance(RunState.LOCAL_STORE_STOPPED)
