# recurring_reminders/core/push/client.py
from __future__ import annotations
import threading
from typing import Any, Optional
import httpx
from recurring_reminders.core.logging import get_logger
from recurring_reminders.core.models.config import PushConfig
from recurring_reminders.core.push.result_types import (
    PushError,
    PushErrorCode,
    PushResult,
)
from recurring_reminders.core.types.result import Err, Ok

logger = get_logger('push.client')


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _is_retryable_status(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class OneSignalClient:
    """
    Thin async client for the OneSignal create-notification endpoint.

    One instance owns one httpx.AsyncClient (connection pool). send() never
    raises for provider or transport failures; it returns Err(PushError).
    """

    def __init__(
        self,
        config: PushConfig,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(config.timeout_seconds, connect=5.0),
            headers={
                'Content-Type': 'application/json; charset=utf-8',
                'Authorization': f'Basic {config.api_key}',
            },
            transport=transport,
        )
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, payload: dict[str, Any]) -> PushResult[dict[str, Any]]:
        """
        POST one notification payload.

        Returns:
            Ok(decoded response body) on 2xx, Err(PushError) otherwise
        """
        if self._closed:
            return Err(PushError(
                code=PushErrorCode.CLIENT_CLOSED,
                message='push client is closed',
                retryable=False,
            ))

        try:
            response = await self._http.post(self.config.api_url, json=payload)
        except httpx.HTTPError as exc:
            return Err(PushError(
                code=PushErrorCode.TRANSPORT_FAILED,
                message=f'{type(exc).__name__}: {exc}',
                retryable=True,
                exception=exc,
            ))

        body = _decode_body(response)
        if not response.is_success:
            return Err(PushError(
                code=PushErrorCode.PROVIDER_REJECTED,
                message=f'provider returned HTTP {response.status_code}',
                retryable=_is_retryable_status(response.status_code),
                status_code=response.status_code,
                body=body,
            ))

        if isinstance(body, dict):
            return Ok(body)
        return Ok({'raw': body})

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._http.aclose()


_shared_client: OneSignalClient | None = None
_shared_lock = threading.Lock()


def get_push_client(config: PushConfig) -> OneSignalClient:
    """
    Return a lazily-created, process-wide push client.

    The first config wins. A later call with a different config gets the
    existing client and a warning; call close_push_client() to rebuild.
    """
    global _shared_client
    with _shared_lock:
        if _shared_client is not None and not _shared_client.closed:
            if _shared_client.config != config:
                logger.warning(
                    'get_push_client called with a different config; '
                    'returning the existing client'
                )
            return _shared_client
        _shared_client = OneSignalClient(config)
        logger.debug(f'Push client created for {config.api_url}')
        return _shared_client


async def close_push_client() -> None:
    global _shared_client
    with _shared_lock:
        client, _shared_client = _shared_client, None
    if client is not None:
        await client.aclose()
