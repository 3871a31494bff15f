from fastapi import APIRouter, Response

from app.inventsight.core.metrics import metrics

router = APIRouter()


@router.get("/ops/metrics")
def get_metrics():
    snapshot = metrics.render()
    return Response(content=snapshot.content, media_type=snapshot.content_type)
