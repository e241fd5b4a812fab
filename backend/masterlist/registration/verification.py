"""Callback handshake proving a registrant controls the address it registers from."""

import asyncio

import httpx
import structlog

VERIFY_PATH = "/verify"
VERIFY_STRING = "I am a northstar server!"
DEFAULT_VERIFY_TIMEOUT = 5.0

_VERIFY_BODY = VERIFY_STRING.encode()

logger = structlog.get_logger()


def build_verify_url(ip: str, auth_port: int) -> str:
    host = f"[{ip}]" if ":" in ip else ip
    return f"http://{host}:{auth_port}{VERIFY_PATH}"


class VerificationClient:
    """Ask the registrant's auth server to prove it runs compatible server software.

    One GET, no retry. The whole exchange shares a single deadline, and at
    most one byte more than VERIFY_STRING is read. Network errors, the
    deadline passing and any other body all count as a failed verification.
    """

    def __init__(self, timeout: float = DEFAULT_VERIFY_TIMEOUT) -> None:
        self._timeout = timeout

    async def verify(self, ip: str, auth_port: int) -> bool:
        url = build_verify_url(ip, auth_port)
        try:
            async with asyncio.timeout(self._timeout):
                body = await self._fetch(url)
        except (httpx.HTTPError, TimeoutError) as e:
            logger.warning("server verification failed", ip=ip, auth_port=auth_port, reason=type(e).__name__)
            return False

        if body != _VERIFY_BODY:
            logger.warning("server verification failed", ip=ip, auth_port=auth_port, reason="unexpected response")
            return False
        return True

    async def _fetch(self, url: str) -> bytes:
        limit = len(_VERIFY_BODY) + 1
        body = b""
        async with (
            httpx.AsyncClient(timeout=self._timeout, follow_redirects=False) as client,
            client.stream("GET", url) as response,
        ):
            async for chunk in response.aiter_bytes():
                body += chunk
                if len(body) >= limit:
                    break
        return body[:limit]
