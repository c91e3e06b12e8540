"""FastAPI application and startup."""

import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI

from hrflow.adapters.notify.log_notifier import LogNotifier
from hrflow.adapters.notify.webhook_notifier import WebhookNotifier
from hrflow.adapters.storage.json_repository import JsonRepository
from hrflow.adapters.web.action_routes import create_action_router
from hrflow.config import AppConfig, __version__
from hrflow.domain.confirmation import PendingConfirmationStore
from hrflow.domain.dispatcher import Dispatcher
from hrflow.domain.events import NotificationRelay
from hrflow.domain.resolver import EntityResolver
from hrflow.domain.sweep import TerminationReminderSweep
from hrflow.ports.outbound import NotificationPort, RepositoryPort


def _log(msg: str):
    print(msg, file=sys.stderr)


def create_app(
    config: Optional[AppConfig] = None,
    repository: Optional[RepositoryPort] = None,
    notifier: Optional[NotificationPort] = None,
    run_sweep_loop: bool = True,
) -> FastAPI:
    config = config or AppConfig.from_env()
    repository = repository or JsonRepository(config.data_dir)
    if notifier is None:
        if config.notify.is_configured:
            notifier = WebhookNotifier(config.notify.webhook_url, token=config.notify.webhook_token or None)
        else:
            notifier = LogNotifier()

    store = PendingConfirmationStore(repository, ttl_minutes=config.confirmation_ttl_minutes)
    resolver = EntityResolver(
        threshold=config.resolver.threshold,
        auto_select=config.resolver.auto_select,
        max_candidates=config.resolver.max_candidates,
    )
    dispatcher = Dispatcher.create(
        repository,
        notifier=notifier,
        store=store,
        resolver=resolver,
        settings=config.managers,
        report_permission_denied=config.report_permission_denied,
    )
    sweep = TerminationReminderSweep(
        repository,
        relay=NotificationRelay(notifier),
        hr_email=config.managers.hr_email,
    )

    app = FastAPI(title="HR Action Dispatcher", version=__version__)
    app.include_router(create_action_router(dispatcher, sweep))
    app.state.dispatcher = dispatcher
    app.state.sweep = sweep

    @app.on_event("startup")
    async def startup_event():
        _log(f"[App] HR action dispatcher {__version__} starting")
        _log(f"[App] Notifications: {type(notifier).__name__}")
        if run_sweep_loop and config.sweep_interval_seconds > 0:
            sweep.start(config.sweep_interval_seconds)
        else:
            _log("[App] Termination sweep loop disabled")

    @app.on_event("shutdown")
    async def shutdown_event():
        await sweep.stop()

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app


def main():
    config = AppConfig.from_env()
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
