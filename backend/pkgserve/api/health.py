from fastapi import APIRouter

router = APIRouter()

@router.get("")
async def health_check():
    """Liveness probe. Not subject to package URL normalization."""
    return {"status": "healthy"}
