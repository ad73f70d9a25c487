from fastapi import APIRouter, Request, status

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", status_code=status.HTTP_200_OK)
async def healthcheck(request: Request) -> dict[str, object]:
    """Report liveness and the channels that have a delivery provider."""

    providers = getattr(request.app.state, "delivery_providers", None) or {}
    return {"status": "ok", "channels": sorted(providers)}
