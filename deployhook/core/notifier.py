"""Best-effort delivery of status messages to a chat webhook."""

from urllib.parse import urlparse

import httpx

from deployhook.config import settings
from deployhook.core.exceptions import NotificationError
from deployhook.models.notification import NotificationMessage
from deployhook.utils.logging import get_logger

logger = get_logger(__name__)


def is_valid_endpoint(endpoint: str | None) -> bool:
    """Whether ``endpoint`` is an absolute http(s) URL."""
    if not endpoint:
        return False
    try:
        parsed = urlparse(endpoint)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class Notifier:
    """Posts NotificationMessages to a webhook endpoint.

    Delivery failures are logged and swallowed; ``notify`` never raises for
    a network error, timeout or non-2xx response.
    """

    def __init__(
        self,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = settings.notify_timeout_seconds if timeout is None else timeout
        self._transport = transport

    async def notify(self, endpoint: str | None, message: NotificationMessage) -> bool:
        """Deliver a message. Returns whether the endpoint accepted it."""
        if not is_valid_endpoint(endpoint):
            logger.info(
                "notifier.skipped",
                reason="no valid endpoint",
                endpoint=endpoint,
                title=message.title,
            )
            return False

        try:
            await self._deliver(endpoint, message)
        except NotificationError as e:
            logger.warning(
                "notifier.rejected",
                title=message.title,
                status_code=e.status_code,
                error=e.message,
            )
            return False
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning(
                "notifier.delivery_failed",
                title=message.title,
                error=str(e) or type(e).__name__,
            )
            return False

        logger.debug("notifier.delivered", title=message.title)
        return True

    async def _deliver(self, endpoint: str, message: NotificationMessage) -> None:
        async with httpx.AsyncClient(
            timeout=self.timeout, transport=self._transport
        ) as client:
            response = await client.post(endpoint, json=message.to_payload())

        if not response.is_success:
            raise NotificationError(
                endpoint,
                f"endpoint answered {response.status_code}",
                status_code=response.status_code,
            )
