"""
Acting-agent dependency for FastAPI routes.

Authentication happens upstream (gateway / session service); requests reach
this API with the authenticated agent's id in the X-Agent-Id header. The
id is checked against the agent roster so a deactivated agent cannot keep
recording outcomes.

A request without the header is a system caller (imports, scheduled jobs)
and bypasses the owner check. The gateway must therefore always set the
header for agent traffic and strip any client-supplied value. Enable
require_agent_header when no header-less caller should reach the API.

Provides:
- get_actor_id: the acting agent's UUID, or None for system callers
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from ..models.agent import Agent


logger = logging.getLogger(__name__)


AGENT_HEADER = "X-Agent-Id"


def get_actor_id(
    x_agent_id: Optional[str] = Header(default=None, alias=AGENT_HEADER),
    db: Session = Depends(get_db),
) -> Optional[UUID]:
    """
    Resolve the acting agent from the X-Agent-Id header.

    Raises 400 if the header is not a UUID, 401 if the agent is unknown (or
    the header is missing while require_agent_header is on) and 403 if the
    agent has been deactivated.
    """
    if not x_agent_id:
        if settings.require_agent_header:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=f"{AGENT_HEADER} header is required",
            )
        return None

    try:
        agent_id = UUID(x_agent_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{AGENT_HEADER} must be a UUID",
        )

    agent = db.get(Agent, agent_id)
    if agent is None:
        logger.warning(f"Request from unknown agent {agent_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown agent",
        )

    if not agent.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Agent has been deactivated",
        )

    return agent.id
