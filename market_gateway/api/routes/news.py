"""News routes (NewsAPI)."""

from fastapi import APIRouter, Depends, Query

from market_gateway.api import dependencies as cache
from market_gateway.api.dependencies import get_gateway
from market_gateway.datasource.types import NewsArticle
from market_gateway.gateway import MarketDataGateway

router = APIRouter(
    prefix="/api/news",
    tags=["news"],
    dependencies=[Depends(cache.news)],
)


@router.get("/headlines", response_model=list[NewsArticle])
async def get_headlines(
    category: str | None = None,
    country: str = "us",
    page_size: int = Query(default=20, alias="pageSize"),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    return await gateway.get_headlines(category, country, page_size)


@router.get("/search", response_model=list[NewsArticle])
async def search(
    q: str | None = None,
    language: str = "en",
    sort_by: str = Query(default="publishedAt", alias="sortBy"),
    page_size: int = Query(default=20, alias="pageSize"),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    return await gateway.search_news(q, language, sort_by, page_size)


@router.get("/business", response_model=list[NewsArticle])
async def get_business(
    page_size: int = Query(default=20, alias="pageSize"),
    gateway: MarketDataGateway = Depends(get_gateway),
):
    return await gateway.get_business_news(page_size)
