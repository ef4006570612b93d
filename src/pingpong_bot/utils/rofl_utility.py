"""Client for the ROFL application daemon (appd).

Inside a ROFL container the daemon listens on a Unix socket and hands out
keys bound to the app's identity. The bot only needs one of them: the
secp256k1 key it signs Pong transactions with.
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class RoflUtility:
    """Talks to the ROFL appd over its Unix socket or an HTTP endpoint."""

    ROFL_SOCKET_PATH: str = "/run/rofl-appd.sock"
    KEY_GENERATE_PATH: str = "/rofl/v1/keys/generate"

    def __init__(self, url: str = '', timeout: float = 30.0) -> None:
        """
        Args:
            url: HTTP base URL or socket path of the daemon; the standard
                socket is used when empty
            timeout: Request timeout in seconds
        """
        self.url: str = url
        self.timeout: float = timeout

    @property
    def _is_http(self) -> bool:
        return self.url.startswith('http')

    def _transport(self) -> httpx.AsyncHTTPTransport | None:
        if self._is_http:
            return None
        socket_path = self.url or self.ROFL_SOCKET_PATH
        logger.debug(f"Using unix domain socket: {socket_path}")
        return httpx.AsyncHTTPTransport(uds=socket_path)

    async def _appd_post(self, path: str, payload: Any) -> Any:
        """Send a JSON POST to the daemon and return the decoded reply.

        Raises:
            httpx.HTTPStatusError: If the daemon answers with an error status
        """
        url = (self.url if self._is_http else "http://localhost") + path

        async with httpx.AsyncClient(transport=self._transport()) as client:
            logger.debug(f"POST {url}")
            response = await client.post(url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return response.json()

    async def fetch_key(self, id: str) -> str:
        """Return the app-bound secp256k1 key named ``id`` as hex.

        The daemon derives the same key for the same id on every start, so
        the bot keeps its signing address across restarts.
        """
        response = await self._appd_post(
            self.KEY_GENERATE_PATH,
            {"key_id": id, "kind": "secp256k1"},
        )
        return response["key"]
