"""System settings (company profile, number formats, catalog names).

Endpoints:
    GET  /api/settings/{key}     Current value (stored row merged over defaults)
    PUT  /api/settings/{key}     Merge new values into the stored row
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from dairyledger.database import get_db
from dairyledger.utils.settings_store import DEFAULTS, get_setting, put_setting

router = APIRouter()


def _known(key: str) -> str:
    if key not in DEFAULTS:
        raise HTTPException(status_code=404, detail=f"Unknown setting: {key}")
    return key


@router.get("/{key}")
async def read_setting(key: str, db: AsyncSession = Depends(get_db)) -> dict:
    return await get_setting(db, _known(key))


@router.put("/{key}")
async def write_setting(key: str, body: dict, db: AsyncSession = Depends(get_db)) -> dict:
    return await put_setting(db, _known(key), body)
