"""
Outcome catalog endpoint.
"""

from fastapi import APIRouter

from ..schemas.workflow import CatalogResponse, OutcomeOption
from ..services.outcome_catalog import CATALOG, CATALOG_VERSION


router = APIRouter(prefix="/api/outcomes", tags=["Outcomes"])


@router.get(
    "/catalog",
    response_model=CatalogResponse,
    summary="Outcome Catalog",
    description="Every outcome with its label, reason list and reporting outcome.",
)
async def get_catalog() -> CatalogResponse:
    return CatalogResponse(
        version=CATALOG_VERSION,
        outcomes=[OutcomeOption.from_definition(entry) for entry in CATALOG],
    )
