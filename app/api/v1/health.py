from fastapi import APIRouter
from app.api.deps import public

router = APIRouter()


@router.get('/health')
@public
def health() -> dict:
    return {'status': 'ok'}
