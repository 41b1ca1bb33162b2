"""FastAPI dependencies."""
from typing import AsyncIterator

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .runtime import Runtime


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Dependency to get database session."""
    async with get_runtime(request).database.session() as session:
        yield session


async def get_patient_id(x_patient_id: str | None = Header(default=None)) -> str:
    """Patient identity verified upstream by the auth gateway."""
    if not x_patient_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_patient_id
