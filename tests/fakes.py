import asyncio
from typing import Dict, List, Optional, Tuple


class FakeResponse:
    def __init__(self, status: int = 200, payload=None, delay: float = 0.0) -> None:
        self.status = status
        self._payload = payload
        self._delay = delay
        self.released = False

    async def json(self, content_type=None):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def release(self) -> None:
        self.released = True


class FakeStreamResponse(FakeResponse):
    def __init__(self, lines: List[bytes], status: int = 200) -> None:
        super().__init__(status=status)
        self.content = AsyncLines(lines)


class AsyncLines:
    def __init__(self, lines) -> None:
        self._lines = list(lines)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._lines:
            raise StopAsyncIteration
        return self._lines.pop(0)


class _FakeRequest:
    def __init__(self, result) -> None:
        self._result = result

    async def _resolve(self):
        if isinstance(self._result, BaseException):
            raise self._result
        if self._result._delay:
            await asyncio.sleep(self._result._delay)
        return self._result

    def __await__(self):
        return self._resolve().__await__()

    async def __aenter__(self):
        return await self._resolve()

    async def __aexit__(self, *exc_info):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession, answering GETs from a url -> response table."""

    def __init__(self, routes: Dict[str, object]) -> None:
        self.routes = routes
        self.requests: List[Tuple[str, Optional[dict]]] = []

    def get(self, url: str, headers: Optional[dict] = None, timeout=None) -> _FakeRequest:
        self.requests.append((url, headers))
        return _FakeRequest(self.routes.get(url, FakeResponse(status=404, payload={"message": "not found"})))

    def urls(self) -> List[str]:
        return [url for url, _ in self.requests]
