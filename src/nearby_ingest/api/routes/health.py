"""Health check endpoint."""

import sqlalchemy as sa
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from nearby_ingest.api.deps import get_db

router = APIRouter()


@router.get("/health")
async def health(db: AsyncSession = Depends(get_db)) -> dict:
    """Liveness plus a trivial database round trip."""
    await db.execute(sa.text("SELECT 1"))
    return {"status": "ok"}
