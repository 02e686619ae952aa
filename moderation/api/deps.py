from dataclasses import dataclass
from functools import lru_cache
from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from moderation.core.config import Settings, get_settings
from moderation.core.queue import ModerationGateway, StatsAggregator, StatsCache
from moderation.core.rbac import RolePolicy
from moderation.db.session import SessionLocal
from moderation.db.store import SqlSubmissionStore


@dataclass(frozen=True)
class Caller:
    """Identity resolved by the upstream authentication proxy."""
    id: str
    role: Optional[str]


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_caller(
    x_caller_id: Optional[str] = Header(None),
    x_caller_role: Optional[str] = Header(None),
) -> Caller:
    """Read the caller identity forwarded by the authentication proxy.

    The headers are trusted as-is; credentials are verified upstream.
    """
    if not x_caller_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Caller identity required",
        )
    return Caller(id=x_caller_id, role=x_caller_role)


@lru_cache
def get_role_policy() -> RolePolicy:
    return RolePolicy.from_settings(get_settings())


@lru_cache
def get_stats_cache() -> Optional[StatsCache]:
    """Process-wide stats cache, or None when stats are always scanned live."""
    ttl = get_settings().stats_cache_ttl_seconds
    if ttl <= 0:
        return None
    return StatsCache(ttl)


def get_gateway(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    role_policy: RolePolicy = Depends(get_role_policy),
    stats_cache: Optional[StatsCache] = Depends(get_stats_cache),
) -> ModerationGateway:
    """Moderation gateway over the request's database session."""
    on_create = stats_cache.invalidate if stats_cache is not None else None
    store = SqlSubmissionStore(db, on_create=on_create)
    return ModerationGateway(
        store,
        role_policy,
        aggregator=StatsAggregator(store, stats_cache),
        max_attempts=settings.decide_max_attempts,
    )
