# recurring_reminders/core/api.py
"""
HTTP trigger for the reminder pass.

POST /send-recurring-reminders runs exactly one pass per request. Order of
checks: configuration (500), caller authorization (401), then the pass
itself (200, or 500 when the batch query fails).
"""

from __future__ import annotations
import asyncio
import hmac
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, Optional, Protocol
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from recurring_reminders.core.errors import ReminderError, UnauthorizedError, ErrorCode
from recurring_reminders.core.logging import get_logger
from recurring_reminders.core.models.config import ReminderConfig
from recurring_reminders.core.models.results import ReminderRunResult
from recurring_reminders.core.runtime import ReminderRuntime
from recurring_reminders.core.scheduler.result_types import (
    BatchQueryError,
    SchemaInitError,
)

logger = get_logger('api')

CORS_ALLOW_HEADERS = ['authorization', 'x-client-info', 'apikey', 'content-type']
CORS_ALLOW_METHODS = ['POST', 'GET', 'OPTIONS']


class Runtime(Protocol):
    async def run_once(self, now_ms: Optional[int] = None) -> ReminderRunResult: ...

    async def close(self) -> None: ...


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={'error': message})


def check_authorization(config: ReminderConfig, header: Optional[str]) -> None:
    """
    Verify the caller's bearer secret.

    No-op when no cron secret is configured.

    Raises:
        UnauthorizedError: if the header does not match 'Bearer <secret>'
    """
    if not config.cron_secret:
        return
    expected = f'Bearer {config.cron_secret}'
    if not hmac.compare_digest((header or '').encode(), expected.encode()):
        raise UnauthorizedError(
            message='Unauthorized',
            code=ErrorCode.INVOCATION_UNAUTHORIZED,
        )


class _RuntimeHolder:
    """Builds the runtime on first use, then reuses it for every request."""

    def __init__(
        self,
        config_loader: Callable[[], ReminderConfig],
        runtime_factory: Callable[[ReminderConfig], Runtime],
    ):
        self.config_loader = config_loader
        self.runtime_factory = runtime_factory
        self.config: Optional[ReminderConfig] = None
        self.runtime: Optional[Runtime] = None
        self._lock = asyncio.Lock()

    def load_config(self) -> ReminderConfig:
        # Re-read until valid so fixing the environment needs no restart.
        if self.config is None:
            self.config = self.config_loader()
            self.config.log_config(logger)
        return self.config

    async def get_runtime(self, config: ReminderConfig) -> Runtime:
        if self.runtime is not None:
            return self.runtime
        async with self._lock:
            if self.runtime is None:
                self.runtime = self.runtime_factory(config)
            return self.runtime

    async def close(self) -> None:
        if self.runtime is not None:
            await self.runtime.close()
            self.runtime = None


def create_app(
    config_loader: Callable[[], ReminderConfig] = ReminderConfig.from_env,
    runtime_factory: Callable[[ReminderConfig], Runtime] = ReminderRuntime,
) -> FastAPI:
    holder = _RuntimeHolder(config_loader, runtime_factory)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        await holder.close()

    app = FastAPI(title='recurring-reminders', lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=['*'],
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
    )

    # Browser preflights are answered by CORSMiddleware; this covers bare OPTIONS.
    @app.options('/send-recurring-reminders')
    async def preflight() -> PlainTextResponse:
        return PlainTextResponse('ok')

    @app.post('/send-recurring-reminders')
    async def send_recurring_reminders(request: Request) -> Any:
        try:
            config = holder.load_config()
        except ReminderError as e:
            logger.error(f'Configuration invalid:\n{e}')
            return _error(500, e.message)

        try:
            check_authorization(config, request.headers.get('authorization'))
        except UnauthorizedError:
            logger.warning('Rejected reminder invocation: bad or missing bearer secret')
            return _error(401, 'Unauthorized')

        try:
            runtime = await holder.get_runtime(config)
            result = await runtime.run_once()
        except (BatchQueryError, SchemaInitError) as e:
            return _error(500, str(e))
        except Exception as e:
            logger.error(f'Reminder pass failed: {e}', exc_info=True)
            return _error(500, str(e) or type(e).__name__)

        return result.to_response()

    return app
