"""
Shared route dependencies.
"""

from typing import Callable

from fastapi import Request, Response

from market_gateway.gateway import MarketDataGateway


def get_gateway(request: Request) -> MarketDataGateway:
    """The gateway constructed once at startup."""
    return request.app.state.gateway


def cache_headers(
    max_age: int = 60,
    s_max_age: int | None = None,
    stale_while_revalidate: int | None = None,
    public: bool = False,
) -> Callable[[Response], None]:
    """Dependency adding Cache-Control hints to successful responses."""
    directives = ["public" if public else "private", f"max-age={max_age}"]
    if s_max_age:
        directives.append(f"s-maxage={s_max_age}")
    if stale_while_revalidate:
        directives.append(f"stale-while-revalidate={stale_while_revalidate}")
    value = ", ".join(directives)

    def set_headers(response: Response) -> None:
        response.headers["Cache-Control"] = value
        response.headers["Vary"] = "Accept-Encoding"

    return set_headers


# Predefined header sets per data class
realtime = cache_headers(max_age=30, stale_while_revalidate=60)
market_data = cache_headers(max_age=60, stale_while_revalidate=120)
corporate_data = cache_headers(max_age=300, stale_while_revalidate=600)
news = cache_headers(max_age=180, stale_while_revalidate=300, public=True)
historical = cache_headers(
    max_age=3600, s_max_age=86400, stale_while_revalidate=7200, public=True
)
