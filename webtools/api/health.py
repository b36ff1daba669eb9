from fastapi import APIRouter, status


router = APIRouter(tags=["Health"])


@router.get("/health", summary="Liveness Check", status_code=status.HTTP_200_OK)
def health() -> dict:
    return {"status": "ok"}
