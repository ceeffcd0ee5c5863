"""
Sample traffic endpoint.

GET / emits one record at every level so the terminal output and the
remote stream can be compared side by side.
"""

import logging

import structlog
from fastapi import APIRouter
from fastapi.responses import HTMLResponse

from ..models.record import TRACE

logger = structlog.get_logger(__name__)
# structlog has no name for the TRACE level
stdlib_logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def hello() -> str:
    """Log at each level and greet."""
    logger.debug("aaa")
    stdlib_logger.log(TRACE, "trace")
    logger.info("Info")
    logger.warning("Warn")
    logger.error("error")
    return "<h1>Hello, World!</h1>"
