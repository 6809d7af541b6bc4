"""buildrelay entry point: wires everything together and runs the server."""

from __future__ import annotations

import asyncio
import signal
import sys

import click

from buildrelay import __version__
from buildrelay.config import Settings, load_settings
from buildrelay.core.bus import EventBus, EventType
from buildrelay.core.queue import BuildQueue
from buildrelay.core.submitter import TriggerSubmitter
from buildrelay.store.jobs import JobStore
from buildrelay.utils.logging import get_logger, setup_logging
from buildrelay.webhooks.dispatcher import Dispatcher
from buildrelay.webhooks.registry import WebhookRegistry
from buildrelay.webhooks.server import RelayServer

log = get_logger(__name__)


class BuildRelay:
    """Main application orchestrator."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        data_dir = settings.get_data_dir()

        self.bus = EventBus()
        self.jobs = JobStore(data_dir / "jobs.db")
        self.queue = BuildQueue(self.jobs, data_dir)
        self.registry = WebhookRegistry(self.jobs)
        self.dispatcher = Dispatcher(self.registry, settings.dispatch)
        self.submitter = TriggerSubmitter(
            self.queue, self.jobs, settings.server.root_url, bus=self.bus
        )
        self.server = RelayServer(
            settings.server,
            settings.triggers,
            self.submitter,
            self.registry,
            self.bus,
            queue=self.queue,
        )

    async def start(self) -> None:
        log.info("buildrelay_starting", version=__version__)

        await self.jobs.start()
        for name in self.settings.jobs:
            await self.jobs.add_job(name)
        await self.queue.start()
        await self.dispatcher.start()

        self.bus.subscribe(EventType.BUILD_COMPLETED, self.dispatcher.on_build_completed)
        await self.bus.start()

        await self.server.start()
        log.info("buildrelay_ready")

    async def stop(self) -> None:
        log.info("buildrelay_stopping")
        await self.server.stop()
        try:
            await asyncio.wait_for(self.bus.wait_idle(), timeout=self.settings.dispatch.timeout_seconds)
        except asyncio.TimeoutError:
            log.warning("pending_events_dropped")
        await self.bus.stop()
        await self.dispatcher.stop()
        await self.queue.stop()
        await self.jobs.stop()
        log.info("buildrelay_stopped")


async def run(settings: Settings) -> None:
    app = BuildRelay(settings)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        log.info("shutdown_signal")
        stop_event.set()

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _signal_handler)

    await app.start()

    try:
        if sys.platform == "win32":
            while not stop_event.is_set():
                await asyncio.sleep(1)
        else:
            await stop_event.wait()
    except KeyboardInterrupt:
        pass
    finally:
        await app.stop()


async def _add_job(settings: Settings, name: str, disabled: bool) -> None:
    store = JobStore(settings.get_data_dir() / "jobs.db")
    await store.start()
    try:
        job = await store.add_job(name, disabled=disabled)
        if disabled and not job.disabled:
            await store.set_disabled(job.name, True)
    finally:
        await store.stop()


async def _list_jobs(settings: Settings) -> list[tuple[str, bool, int]]:
    store = JobStore(settings.get_data_dir() / "jobs.db")
    await store.start()
    try:
        return [(j.name, j.disabled, len(j.webhooks())) for j in await store.list_jobs()]
    finally:
        await store.stop()


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML file")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR)")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, log_level: str | None) -> None:
    """buildrelay: trigger builds from source control and notify webhooks."""
    settings = load_settings(config_path)
    if log_level:
        settings.log_level = log_level
    setup_logging(level=settings.log_level, json_output=settings.log_json)
    ctx.obj = settings


@cli.command()
@click.pass_obj
def serve(settings: Settings) -> None:
    """Run the HTTP server."""
    asyncio.run(run(settings))


@cli.command("add-job")
@click.argument("name")
@click.option("--disabled", is_flag=True, help="Create the job without accepting builds")
@click.pass_obj
def add_job(settings: Settings, name: str, disabled: bool) -> None:
    """Register a job that can receive triggers and webhooks."""
    asyncio.run(_add_job(settings, name, disabled))
    click.echo(f"Job {name} registered.")


@cli.command("list-jobs")
@click.pass_obj
def list_jobs(settings: Settings) -> None:
    """Show registered jobs and how many webhooks each one has."""
    rows = asyncio.run(_list_jobs(settings))
    if not rows:
        click.echo("No jobs registered.")
        return
    for name, disabled, webhook_count in rows:
        state = " (disabled)" if disabled else ""
        click.echo(f"{name}{state}: {webhook_count} webhook(s)")


if __name__ == "__main__":
    cli()
