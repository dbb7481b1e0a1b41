"""Application bootstrap for reflowlogs.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → registry + pod watcher → REST

Shutdown cancels the root token, then waits for the pod watcher and every
log streamer to stop before tearing down the REST server and API client.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any

from reflowlogs.config import ConfigError, load_config, validate_config
from reflowlogs.models.config import ReflowConfig
from reflowlogs.models.pods import PodIdentity, StreamFilterConfig
from reflowlogs.observability.logging import get_logger, setup_logging
from reflowlogs.shutdown import CancellationToken, ShutdownCoordinator
from reflowlogs.streaming.registry import ActiveStreamRegistry
from reflowlogs.streaming.sink import LineSink, StdoutSink
from reflowlogs.streaming.streamer import PodLogStreamer

if TYPE_CHECKING:
    import structlog

    from reflowlogs.collector.pod_watcher import PodWatcher

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: BaseException) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class ReflowApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    ``stop()`` is safe to call on an app that was never started or has
    already been stopped.
    """

    def __init__(
        self,
        shutdown: ShutdownCoordinator | None = None,
        config: ReflowConfig | None = None,
        sink: LineSink | None = None,
    ) -> None:
        self.shutdown = shutdown or ShutdownCoordinator()
        self.config = config
        self.registry = ActiveStreamRegistry()
        self._sink: LineSink = sink or StdoutSink()

        self._api_client: Any = None
        self._watcher: PodWatcher | None = None
        self._watcher_task: asyncio.Task[None] | None = None
        self._rest_server: Any = None
        self._rest_task: asyncio.Task[None] | None = None

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def token(self) -> CancellationToken:
        return self.shutdown.token

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        The caller (main()) re-raises this as a non-zero exit.
        """
        # --- 1. Configuration -------------------------------------------
        try:
            config = self.config or load_config()
            validate_config(config)
        except ConfigError as exc:
            setup_logging("info")
            self._log = get_logger("app")
            raise _ComponentError("config", exc) from exc
        self.config = config

        # --- 2. Logging -------------------------------------------------
        setup_logging(config.log.level)
        self._log = get_logger("app")
        self._log.info("reflowlogs starting", version=_reflowlogs_version())
        for note in config.load_warnings:
            self._log.warning("config_value_ignored", detail=note)
        self._log.debug(
            "configuration loaded",
            namespace=config.namespace,
            ingress_namespace=config.ingress_namespace,
            label_selector=config.label_selector,
            default_log_format=config.default_log_format,
        )

        # --- 3. Kubernetes client ----------------------------------------
        await self._start_k8s_client()

        # --- 4. Pod watcher ----------------------------------------------
        await self._start_watcher()

        # --- 5. REST API -------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("reflowlogs started", target_namespace=config.namespace)

    async def _start_k8s_client(self) -> None:
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting k8s client")
        try:
            from reflowlogs.kube.client import connect

            self._api_client = await connect(self.config.kubeconfig)
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_watcher(self) -> None:
        """Start the pod watch loop as a background task."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting pod watcher")
        try:
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            from reflowlogs.collector.pod_watcher import PodWatcher
            from reflowlogs.kube.logs import KubernetesLogSource
            from reflowlogs.kube.watch import KubernetesWatchSource

            core_v1 = k8s_client.CoreV1Api(self._api_client)
            log_source = KubernetesLogSource(core_v1)
            filter_config = StreamFilterConfig.from_flag(self.config.namespace, self.config.default_log_format)
            registry = self.registry
            sink = self._sink

            def _make_streamer(pod: PodIdentity, token: CancellationToken) -> PodLogStreamer:
                return PodLogStreamer(
                    pod=pod,
                    source=log_source,
                    registry=registry,
                    token=token,
                    filter_config=filter_config,
                    sink=sink,
                )

            self._watcher = PodWatcher(
                source=KubernetesWatchSource(core_v1),
                registry=registry,
                streamer_factory=_make_streamer,
                token=self.token,
                namespace=self.config.ingress_namespace,
                label_selector=self.config.label_selector,
                stop_on_delete=self.config.stop_stream_on_delete,
            )
            self._watcher_task = asyncio.create_task(self._watcher.run(), name="pod-watcher")
            self._log.info(
                "pod watcher started",
                ingress_namespace=self.config.ingress_namespace,
                label_selector=self.config.label_selector,
            )
        except Exception as exc:
            raise _ComponentError("pod_watcher", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn REST server unless disabled."""
        assert self._log is not None
        assert self.config is not None
        if not self.config.api.enabled:
            self._log.info("rest api disabled (api.enabled=false)")
            return
        self._log.debug("starting rest api")
        try:
            import uvicorn  # type: ignore[import-untyped]

            from reflowlogs.api import create_app

            class _Server(uvicorn.Server):
                # Signals belong to ShutdownCoordinator
                def install_signal_handlers(self) -> None:
                    pass

                def capture_signals(self) -> contextlib.AbstractContextManager[None]:
                    return contextlib.nullcontext()

            fastapi_app = create_app(registry=self.registry, token=self.token, config=self.config)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = _Server(uv_config)
            self._rest_task = asyncio.create_task(self._serve_rest(server), name="rest-server")
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            # The endpoint is informational; log shipping continues without it
            self._log.warning("rest api failed to start", error=str(exc))
            self._rest_server = None

    async def _serve_rest(self, server: Any) -> None:
        """Run uvicorn; a bind failure disables the endpoint instead of the process.

        uvicorn reports startup errors (e.g. port in use) with ``sys.exit``.
        """
        try:
            await server.serve()
        except (SystemExit, OSError) as exc:
            log = self._log or get_logger("app")
            log.warning("rest api failed to start", error=str(exc) or type(exc).__name__)
            self._rest_server = None

    # ------------------------------------------------------------------
    # Steady state
    # ------------------------------------------------------------------

    async def run_until_shutdown(self) -> None:
        """Block until a shutdown signal arrives or the watcher dies.

        Raises _ComponentError if the watcher could not establish its
        initial subscription.
        """
        assert self._watcher_task is not None
        signal_wait = asyncio.ensure_future(self.shutdown.wait_for_signal())
        try:
            await asyncio.wait({signal_wait, self._watcher_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            signal_wait.cancel()

        if self._watcher_task.done() and not self.token.cancelled:
            exc = self._watcher_task.exception()
            if exc is not None:
                raise _ComponentError("pod_watcher", exc)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Cancel every task and release resources.

        Each step is wrapped independently; a failure in one does not
        prevent the others from running.
        """
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("reflowlogs shutting down")
        self._running = False

        # Idempotent: a signal may already have done this
        self.token.cancel()

        if self._watcher_task is not None:
            await self._await_task("pod_watcher", self._watcher_task)
            self._watcher_task = None

        if self._watcher is not None:
            if not await self._watcher.join(timeout=_SHUTDOWN_GRACE_SECONDS):
                log.warning("log streamers still running after grace period", timeout=_SHUTDOWN_GRACE_SECONDS)
            self._watcher = None

        if self._rest_server is not None:
            self._rest_server.should_exit = True
        if self._rest_task is not None:
            await self._await_task("rest", self._rest_task)
        self._rest_server = None
        self._rest_task = None

        await self._stop_k8s_client()
        log.info("reflowlogs stopped", active_streams=len(self.registry))

    async def _await_task(self, name: str, task: asyncio.Task[None]) -> None:
        log = self._log or get_logger("app")
        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
            task.cancel()
        except Exception as exc:
            log.debug("component exited with error", component=name, error=str(exc))

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._api_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._api_client.close()
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._api_client = None


def _reflowlogs_version() -> str:
    from reflowlogs import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    shutdown = ShutdownCoordinator()
    shutdown.install()
    app = ReflowApp(shutdown=shutdown)

    try:
        await app.start()
        await app.run_until_shutdown()
    except _ComponentError as exc:
        # A mandatory component failed; log and exit non-zero
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        # Ensure stop runs even if start raises or is interrupted
        if app._running:
            await app.stop()
        shutdown.uninstall()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
