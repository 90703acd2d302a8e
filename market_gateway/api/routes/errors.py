"""Client-side error reporting sink."""

from typing import Any

from fastapi import APIRouter
from loguru import logger
from pydantic import BaseModel, ConfigDict

router = APIRouter(prefix="/api/errors", tags=["errors"])


class ClientErrorReport(BaseModel):
    """Error observed by a frontend; unknown fields are kept."""

    model_config = ConfigDict(extra="allow")

    message: str | None = None
    stack: str | None = None
    context: Any = None
    level: str | None = None
    tags: Any = None
    breadcrumbs: Any = None


@router.post("")
async def report_error(report: ClientErrorReport) -> dict[str, bool]:
    """Log a client error report; nothing is stored."""
    logger.bind(source="client").error(
        f"Client error reported: {report.message} | "
        f"level={report.level} tags={report.tags} context={report.context}"
    )
    if report.stack:
        logger.bind(source="client").debug(f"Client stack: {report.stack}")
    return {"success": True}
