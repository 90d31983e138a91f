from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from app.api.dependencies import get_car_api
from app.models.schemas import ErrorResponse
from app.services.car_api import CarApiClient

router = APIRouter(
    prefix="/api/carapi",
    tags=["carapi"],
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
)


@router.get("/makes")
async def list_makes(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=1000, ge=1),
    car_api: CarApiClient = Depends(get_car_api),
) -> Any:
    return await car_api.list_makes(page=page, limit=limit)


@router.get("/models")
async def list_models(
    make: str | None = None,
    car_api: CarApiClient = Depends(get_car_api),
) -> Any:
    return await car_api.list_models(make)


@router.get("/years")
async def list_years(
    make: str | None = None,
    model: str | None = None,
    car_api: CarApiClient = Depends(get_car_api),
) -> Any:
    # Upstream returns a bare list of years.
    return await car_api.list_years(make, model)
