from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blog.database import get_db
from blog.dependencies import require_admin
from blog.schemas import CategoryCreate, CategoryResponse
from blog.security import CallerIdentity
from blog.services import category_service

router = APIRouter(prefix="/Category", tags=["categories"])


@router.get("/List", response_model=list[CategoryResponse])
async def list_categories(db: AsyncSession = Depends(get_db)):
    return await category_service.list_categories(db)


@router.post("/Create", status_code=201, response_model=CategoryResponse)
async def create_category(
    data: CategoryCreate,
    identity: CallerIdentity = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        return await category_service.create_category(db, data)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="A category with this name already exists")
