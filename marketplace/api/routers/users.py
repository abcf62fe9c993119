from fastapi import APIRouter, Depends
from marketplace.api.deps import get_user_service
from marketplace.api.errors import to_http
from marketplace.domain.errors import MarketplaceError
from marketplace.services.user_service import UserService
from marketplace.domain.schemas import UserCreate, UserRead

router = APIRouter(prefix="/users", tags=["users"])

@router.post("/", response_model=UserRead)
def create_user(payload: UserCreate, service: UserService = Depends(get_user_service)):
    return service.create_user(payload)

@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, service: UserService = Depends(get_user_service)):
    try:
        return service.get_user(user_id)
    except MarketplaceError as e:
        raise to_http(e)
