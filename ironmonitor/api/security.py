"""
Supervisor PIN gate for admin and export endpoints
"""

import hmac
from typing import Optional

from fastapi import Depends, Header, HTTPException
import structlog

from ironmonitor.runtime import MonitorRuntime, get_runtime

logger = structlog.get_logger(__name__)


async def require_supervisor(
    x_supervisor_pin: Optional[str] = Header(None),
    runtime: MonitorRuntime = Depends(get_runtime)
):
    """Reject requests that do not carry the supervisor PIN"""
    expected = runtime.config.supervisor_pin
    if not x_supervisor_pin or not hmac.compare_digest(x_supervisor_pin, expected):
        logger.warning("Supervisor access denied")
        raise HTTPException(status_code=403, detail="Insufficient permissions")
