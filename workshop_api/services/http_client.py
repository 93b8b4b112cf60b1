import httpx

from workshop_api.core import config


def build_http_client(**kwargs) -> httpx.AsyncClient:
    kwargs.setdefault("timeout", config.HTTP_TIMEOUT_SECONDS)
    return httpx.AsyncClient(**kwargs)


async def get_http_client():
    """FastAPI dependency: one outbound client per request, closed afterwards."""
    async with build_http_client() as client:
        yield client
