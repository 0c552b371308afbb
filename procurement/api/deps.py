from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException, status

from procurement.bootstrap import build_coordinator, configure_logging, load_policy_config
from procurement.core.approval import ApprovalCoordinator
from procurement.core.config import get_settings


@lru_cache
def get_coordinator() -> ApprovalCoordinator:
    """Process-wide coordinator built from settings and the policy file."""
    settings = get_settings()
    policy_config = load_policy_config(settings)
    configure_logging(settings, policy_config)
    return build_coordinator(settings, policy_config)


def get_actor_id(x_actor_id: Optional[str] = Header(None)) -> str:
    """Authenticated actor id, forwarded by the gateway in front of the API."""
    if not x_actor_id or not x_actor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id header is required",
        )
    return x_actor_id.strip()
