from typing import Optional

from fastapi import APIRouter, Depends, Form, HTTPException, status
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from blog.database import get_db
from blog.dependencies import get_current_identity, require_identity
from blog.exceptions import EntityNotFoundError, InvalidFormError, PermissionDeniedError
from blog.schemas import (
    ArticleDeleteConfirmation,
    ArticleDetail,
    ArticleForm,
    ArticleFormPage,
    ArticleResponse,
    ArticleViewModel,
    FormError,
)
from blog.security import CallerIdentity
from blog.services import article_service, category_service

router = APIRouter(prefix="/Article", tags=["articles"])

LIST_URL = "/Article/List"


def _parse_id(raw: Optional[str]) -> int:
    """Turn the raw id segment into an int, or fail with 400."""
    if raw is None or not raw.strip():
        raise HTTPException(status_code=400, detail="Article id is required")
    try:
        return int(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Article id must be an integer")


def _redirect_to_list() -> RedirectResponse:
    return RedirectResponse(url=LIST_URL, status_code=status.HTTP_302_FOUND)


def _validate_form(**raw) -> tuple[Optional[ArticleForm], list[FormError]]:
    try:
        return ArticleForm.model_validate(raw), []
    except ValidationError as exc:
        return None, [
            FormError(field=".".join(str(p) for p in err["loc"]) or "form", message=err["msg"])
            for err in exc.errors()
        ]


async def _redisplay(
    db: AsyncSession,
    errors: list[FormError],
    *,
    article_id: Optional[int] = None,
    title: str,
    content: str,
    category_id: str,
    tags: str,
) -> ArticleFormPage:
    """Rebuild the form with the submitted values so nothing typed is lost."""
    try:
        selected = int(category_id) if category_id else None
    except ValueError:
        selected = None
    return ArticleFormPage(
        form=ArticleViewModel(
            id=article_id,
            title=title,
            content=content,
            category_id=selected,
            categories=await category_service.list_categories(db),
            tags=tags,
        ),
        errors=errors,
    )


# ---------------------------------------------------------------------------
# Listing & detail
# ---------------------------------------------------------------------------

@router.get("")
async def index():
    return _redirect_to_list()


@router.get("/List", response_model=list[ArticleResponse])
async def list_articles(db: AsyncSession = Depends(get_db)):
    return await article_service.list_articles(db)


@router.get("/Details", response_model=ArticleDetail)
@router.get("/Details/{article_id}", response_model=ArticleDetail)
async def article_details(article_id: Optional[str] = None, db: AsyncSession = Depends(get_db)):
    article_id = _parse_id(article_id)
    try:
        return await article_service.get_article_details(db, article_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

@router.get("/Create", response_model=ArticleViewModel)
async def create_form(
    identity: CallerIdentity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.build_create_form(db)


@router.post("/Create", response_model=None)
async def create_article(
    title: str = Form(""),
    content: str = Form(""),
    category_id: str = Form(""),
    tags: str = Form(""),
    identity: CallerIdentity = Depends(require_identity),
    db: AsyncSession = Depends(get_db),
):
    raw = dict(title=title, content=content, category_id=category_id, tags=tags)
    form, errors = _validate_form(**raw)
    if form is None:
        return await _redisplay(db, errors, **raw)

    try:
        await article_service.create_article(db, identity, form)
    except InvalidFormError as e:
        return await _redisplay(db, [FormError(field=e.field, message=e.message)], **raw)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Conflicting concurrent write, please retry")
    return _redirect_to_list()


# ---------------------------------------------------------------------------
# Edit
# ---------------------------------------------------------------------------

@router.get("/Edit", response_model=ArticleViewModel)
@router.get("/Edit/{article_id}", response_model=ArticleViewModel)
async def edit_form(
    article_id: Optional[str] = None,
    identity: Optional[CallerIdentity] = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    article_id = _parse_id(article_id)
    try:
        return await article_service.get_edit_form(db, identity, article_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.post("/Edit", response_model=None)
async def edit_article(
    id: Optional[str] = Form(None),
    title: str = Form(""),
    content: str = Form(""),
    category_id: str = Form(""),
    tags: str = Form(""),
    identity: Optional[CallerIdentity] = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    article_id = _parse_id(id)
    try:
        await article_service.ensure_editable(db, identity, article_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))

    raw = dict(title=title, content=content, category_id=category_id, tags=tags)
    form, errors = _validate_form(id=article_id, **raw)
    if form is None:
        return await _redisplay(db, errors, article_id=article_id, **raw)

    try:
        await article_service.update_article(db, identity, article_id, form)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except InvalidFormError as e:
        return await _redisplay(
            db, [FormError(field=e.field, message=e.message)], article_id=article_id, **raw
        )
    except IntegrityError:
        raise HTTPException(status_code=409, detail="Conflicting concurrent write, please retry")
    return _redirect_to_list()


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@router.get("/Delete", response_model=ArticleDeleteConfirmation)
@router.get("/Delete/{article_id}", response_model=ArticleDeleteConfirmation)
async def delete_confirmation(
    article_id: Optional[str] = None,
    identity: Optional[CallerIdentity] = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    article_id = _parse_id(article_id)
    try:
        return await article_service.get_delete_confirmation(db, identity, article_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.post("/Delete", response_model=None)
@router.post("/Delete/{article_id}", response_model=None)
async def delete_article(
    article_id: Optional[str] = None,
    identity: Optional[CallerIdentity] = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
):
    article_id = _parse_id(article_id)
    try:
        await article_service.delete_article(db, identity, article_id)
    except EntityNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return _redirect_to_list()
