"""
Fairway Orders: nearest-hole lookup
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fairway.db.database import get_db
from fairway.db.order_ops import nearest_holes
from fairway.schemas.order import NearestHole

router = APIRouter(prefix="/holes", tags=["holes"])


@router.get("/nearest", response_model=list[NearestHole])
async def get_nearest_hole(
    course_id: str = Query(..., min_length=1),
    p_lat: float = Query(..., ge=-90, le=90),
    p_lng: float = Query(..., ge=-180, le=180),
    db: AsyncSession = Depends(get_db),
):
    """Nearest hole to a point, as a list of at most one entry. Empty when the course has no holes."""
    return await nearest_holes(db, course_id, p_lat, p_lng, limit=1)
