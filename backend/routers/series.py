from fastapi import APIRouter, Depends, Query, Response

from backend.routers.deps import get_pipeline
from backend.schemas.series import AnalyteRequest
from backend.services.pipeline import SeriesPipeline

router = APIRouter(prefix="/api", tags=["series"])


@router.post("/smart-blurb")
@router.post("/data-management/smart-blurb")
def smart_blurb(
    response: Response,
    payload: AnalyteRequest | None = None,
    debug: str | None = Query(default=None),
    pipeline: SeriesPipeline = Depends(get_pipeline),
):
    response.headers["Cache-Control"] = "no-store"
    return pipeline.run(payload or AnalyteRequest(), debug=debug == "1")
