"""
Forms Router - owner-scoped CRUD for forms, their elements and share links
"""

import logging
import uuid
from datetime import timezone

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user
from backend.auth.entitlements import enforce_form_quota
from backend.auth.user import AuthUser
from backend.utils.errors import NotFoundError
from backend.utils.responses import success_response
from crud.form import FormRepository
from database import get_db
from models.form import FormElementIn, FormElementOut, FormIn, FormOut, FormShareIn, FormShareOut

logger = logging.getLogger(__name__)

forms_router = APIRouter(prefix="/api/forms", tags=["forms"])


def _form_out(form) -> dict:
    return FormOut.model_validate(form).model_dump(mode="json")


def _element_out(element) -> dict:
    return FormElementOut.model_validate(element).model_dump(mode="json")


async def _owned_form_or_404(repo: FormRepository, form_id: int, user_id: int):
    form = await repo.get_owned_form(form_id, user_id)
    if not form:
        raise NotFoundError("Form not found")
    return form


@forms_router.post("")
async def create_form(
    payload: FormIn,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Create a form, subject to the plan's form quota"""
    await enforce_form_quota(db, current_user.user_id)

    form = await FormRepository(db).create_form(current_user.user_id, payload.model_dump())
    await db.commit()
    logger.info(f"User {current_user.user_id} created form {form.id}")
    return success_response(_form_out(form), status=201)


@forms_router.get("")
async def list_forms(
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    forms = await FormRepository(db).list_forms(current_user.user_id)
    return success_response([_form_out(form) for form in forms])


@forms_router.get("/{form_id}")
async def get_form(
    form_id: int,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Owned forms and public forms are readable"""
    form = await FormRepository(db).get_visible_form(form_id, current_user.user_id)
    if not form:
        raise NotFoundError("Form not found")
    return success_response(_form_out(form))


@forms_router.put("/{form_id}")
async def update_form(
    form_id: int,
    payload: FormIn,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    repo = FormRepository(db)
    form = await _owned_form_or_404(repo, form_id, current_user.user_id)
    form = await repo.update_form(form, payload.model_dump())
    await db.commit()
    return success_response(_form_out(form))


@forms_router.delete("/{form_id}")
async def delete_form(
    form_id: int,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    repo = FormRepository(db)
    form = await _owned_form_or_404(repo, form_id, current_user.user_id)
    await repo.delete_form(form)
    await db.commit()
    logger.info(f"User {current_user.user_id} deleted form {form_id}")
    return success_response(message="Form deleted")


@forms_router.post("/{form_id}/elements")
async def create_element(
    form_id: int,
    payload: FormElementIn,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    repo = FormRepository(db)
    await _owned_form_or_404(repo, form_id, current_user.user_id)
    element = await repo.create_element(form_id, payload.model_dump())
    await db.commit()
    return success_response(_element_out(element), status=201)


@forms_router.get("/{form_id}/elements")
async def list_elements(
    form_id: int,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    repo = FormRepository(db)
    if not await repo.get_visible_form(form_id, current_user.user_id):
        raise NotFoundError("Form not found")
    elements = await repo.list_elements(form_id)
    return success_response([_element_out(element) for element in elements])


@forms_router.put("/{form_id}/elements/{element_id}")
async def update_element(
    form_id: int,
    element_id: int,
    payload: FormElementIn,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    repo = FormRepository(db)
    await _owned_form_or_404(repo, form_id, current_user.user_id)
    element = await repo.get_element(form_id, element_id)
    if not element:
        raise NotFoundError("Element not found")
    element = await repo.update_element(element, payload.model_dump())
    await db.commit()
    return success_response(_element_out(element))


@forms_router.delete("/{form_id}/elements/{element_id}")
async def delete_element(
    form_id: int,
    element_id: int,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    repo = FormRepository(db)
    await _owned_form_or_404(repo, form_id, current_user.user_id)
    element = await repo.get_element(form_id, element_id)
    if not element:
        raise NotFoundError("Element not found")
    await repo.delete_element(element)
    await db.commit()
    return success_response(message="Element deleted")


@forms_router.post("/{form_id}/share")
async def create_share(
    form_id: int,
    payload: FormShareIn,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Issue a new share token for an owned form"""
    repo = FormRepository(db)
    await _owned_form_or_404(repo, form_id, current_user.user_id)

    expires_at = payload.expires_at
    if expires_at is not None and expires_at.tzinfo is not None:
        # Stored as naive UTC like every other timestamp
        expires_at = expires_at.astimezone(timezone.utc).replace(tzinfo=None)

    share = await repo.create_share(form_id, payload.share_type, str(uuid.uuid4()), expires_at)
    await db.commit()
    logger.info(f"User {current_user.user_id} shared form {form_id} ({payload.share_type})")
    return success_response(FormShareOut.model_validate(share).model_dump(mode="json"), status=201)


@forms_router.get("/{form_id}/share")
async def get_share(
    form_id: int,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Newest unexpired share of an owned form"""
    share = await FormRepository(db).get_active_share(form_id, current_user.user_id)
    if not share:
        raise NotFoundError("Share not found")
    return success_response(FormShareOut.model_validate(share).model_dump(mode="json"))
