"""
Responses Router - form submissions, owner listing and CSV export
"""

import csv
import io
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, get_optional_user
from backend.auth.user import AuthUser
from backend.utils.errors import AuthorizationError, NotFoundError, ValidationError
from backend.utils.responses import success_response
from crud.form import FormRepository
from crud.response import ResponseRepository
from database import get_db
from models.form import FormResponseIn, FormResponseOut

logger = logging.getLogger(__name__)

responses_router = APIRouter(prefix="/api/forms", tags=["responses"])

CSV_HEADER = ["Response ID", "Created At", "Response Data"]


def _response_out(response) -> dict:
    return FormResponseOut.model_validate(response).model_dump(mode="json")


async def _owned_form_or_404(db: AsyncSession, form_id: int, user_id: int):
    form = await FormRepository(db).get_owned_form(form_id, user_id)
    if not form:
        raise NotFoundError("Form not found")
    return form


@responses_router.post("/{form_id}/responses")
async def submit_response(
    form_id: int,
    payload: FormResponseIn,
    current_user: Optional[AuthUser] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Record a submission.
    Anonymous callers are only accepted when the form allows anonymous responses;
    signed-in callers are recorded as the respondent.
    """
    form = await FormRepository(db).get_form(form_id)
    if not form:
        raise NotFoundError("Form not found")
    if current_user is None and not form.allow_anonymous:
        raise AuthorizationError("This form does not accept anonymous responses")

    respondent_id = current_user.user_id if current_user else None
    response = await ResponseRepository(db).create_response(form_id, payload.response_data, respondent_id)
    await db.commit()
    logger.info(f"Response {response.id} recorded for form {form_id}")
    return success_response(_response_out(response), status=201)


@responses_router.get("/{form_id}/responses")
async def list_responses(
    form_id: int,
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Submissions to an owned form, newest first"""
    await _owned_form_or_404(db, form_id, current_user.user_id)
    responses = await ResponseRepository(db).list_responses(form_id)
    return success_response([_response_out(response) for response in responses])


@responses_router.get("/{form_id}/responses/export")
async def export_responses(
    form_id: int,
    export_format: str = Query("csv", alias="format"),
    current_user: AuthUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Download an owned form's submissions, oldest first, as CSV"""
    await _owned_form_or_404(db, form_id, current_user.user_id)
    if export_format != "csv":
        raise ValidationError("Invalid export format")

    responses = await ResponseRepository(db).list_responses(form_id, newest_first=False)

    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(CSV_HEADER)
    for response in responses:
        writer.writerow([
            response.id,
            response.created_at.isoformat(),
            json.dumps(response.response_data),
        ])

    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="form-{form_id}-responses.csv"'},
    )
