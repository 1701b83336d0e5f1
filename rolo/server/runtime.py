import asyncio

from rolo.service import UnifiedSearch

_service: UnifiedSearch | None = None
_service_lock = asyncio.Lock()


async def get_service_async() -> UnifiedSearch:
    global _service
    async with _service_lock:
        if _service is None:
            _service = await UnifiedSearch.create()
    return _service


def get_service() -> UnifiedSearch:
    if _service is None:
        raise RuntimeError("Search service not initialized. Call get_service_async() first.")
    return _service


async def reset_service() -> None:
    global _service
    if _service is not None:
        await _service.close()
        _service = None
