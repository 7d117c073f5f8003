"""
ResponseRepository for database operations on FormResponse model
"""

from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import FormResponse


class ResponseRepository:
    """
    Repository class for form submissions.
    Callers check form ownership before listing; this layer only filters by form.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_response(
        self,
        form_id: int,
        response_data: Any,
        respondent_id: Optional[int] = None,
    ) -> FormResponse:
        response = FormResponse(
            form_id=form_id,
            respondent_id=respondent_id,
            response_data=response_data,
        )
        self.db.add(response)
        await self.db.flush()
        await self.db.refresh(response)
        return response

    async def list_responses(self, form_id: int, newest_first: bool = True) -> List[FormResponse]:
        if newest_first:
            ordering = (FormResponse.created_at.desc(), FormResponse.id.desc())
        else:
            ordering = (FormResponse.created_at, FormResponse.id)
        result = await self.db.execute(
            select(FormResponse)
            .where(FormResponse.form_id == form_id)
            .order_by(*ordering)
        )
        return list(result.scalars().all())
