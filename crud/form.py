"""
FormRepository for database operations on Form and FormElement models
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import Form, FormElement, FormResponse, FormShare, utcnow


class FormRepository:
    """
    Repository class for forms and their elements.
    Every owner-scoped lookup filters on user_id in the query itself, so a
    form that belongs to someone else is indistinguishable from a missing one.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_forms_for_user(self, user_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Form.id)).where(Form.user_id == user_id)
        )
        return result.scalar_one()

    async def create_form(self, user_id: int, form_data: dict) -> Form:
        form = Form(user_id=user_id, **form_data)
        self.db.add(form)
        await self.db.flush()
        await self.db.refresh(form)
        return form

    async def list_forms(self, user_id: int) -> List[Form]:
        result = await self.db.execute(
            select(Form)
            .where(Form.user_id == user_id)
            .order_by(Form.created_at.desc(), Form.id.desc())
        )
        return list(result.scalars().all())

    async def get_form(self, form_id: int) -> Optional[Form]:
        """Unscoped lookup, for submission endpoints only."""
        result = await self.db.execute(select(Form).where(Form.id == form_id))
        return result.scalar_one_or_none()

    async def get_owned_form(self, form_id: int, user_id: int) -> Optional[Form]:
        result = await self.db.execute(
            select(Form).where(Form.id == form_id, Form.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_visible_form(self, form_id: int, user_id: int) -> Optional[Form]:
        """Form owned by user_id, or any public form."""
        result = await self.db.execute(
            select(Form).where(
                Form.id == form_id,
                or_(Form.user_id == user_id, Form.is_public.is_(True)),
            )
        )
        return result.scalar_one_or_none()

    async def update_form(self, form: Form, updates: dict) -> Form:
        for key, value in updates.items():
            if hasattr(form, key):
                setattr(form, key, value)
        form.updated_at = utcnow()
        await self.db.flush()
        await self.db.refresh(form)
        return form

    async def delete_form(self, form: Form) -> None:
        await self.db.execute(delete(FormResponse).where(FormResponse.form_id == form.id))
        await self.db.execute(delete(FormShare).where(FormShare.form_id == form.id))
        await self.db.execute(delete(FormElement).where(FormElement.form_id == form.id))
        await self.db.execute(delete(Form).where(Form.id == form.id))

    async def create_element(self, form_id: int, element_data: dict) -> FormElement:
        element = FormElement(form_id=form_id, **element_data)
        self.db.add(element)
        await self.db.flush()
        await self.db.refresh(element)
        return element

    async def list_elements(self, form_id: int) -> List[FormElement]:
        result = await self.db.execute(
            select(FormElement)
            .where(FormElement.form_id == form_id)
            .order_by(FormElement.order_index, FormElement.id)
        )
        return list(result.scalars().all())

    async def get_element(self, form_id: int, element_id: int) -> Optional[FormElement]:
        result = await self.db.execute(
            select(FormElement).where(
                FormElement.id == element_id,
                FormElement.form_id == form_id,
            )
        )
        return result.scalar_one_or_none()

    async def update_element(self, element: FormElement, updates: dict) -> FormElement:
        for key, value in updates.items():
            if hasattr(element, key):
                setattr(element, key, value)
        element.updated_at = utcnow()
        await self.db.flush()
        await self.db.refresh(element)
        return element

    async def delete_element(self, element: FormElement) -> None:
        await self.db.execute(delete(FormElement).where(FormElement.id == element.id))

    async def create_share(
        self,
        form_id: int,
        share_type: str,
        share_token: str,
        expires_at: Optional[datetime] = None,
    ) -> FormShare:
        share = FormShare(
            form_id=form_id,
            share_type=share_type,
            share_token=share_token,
            expires_at=expires_at,
        )
        self.db.add(share)
        await self.db.flush()
        await self.db.refresh(share)
        return share

    async def get_active_share(self, form_id: int, user_id: int) -> Optional[FormShare]:
        """Newest unexpired share of a form owned by user_id."""
        result = await self.db.execute(
            select(FormShare)
            .join(Form, Form.id == FormShare.form_id)
            .where(
                FormShare.form_id == form_id,
                Form.user_id == user_id,
                or_(FormShare.expires_at.is_(None), FormShare.expires_at > utcnow()),
            )
            .order_by(FormShare.created_at.desc(), FormShare.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
