"""
Preference API endpoints
"""
from fastapi import APIRouter

from oab_prep.schemas.user import ThemePreference
from oab_prep.services.result_store import result_store

router = APIRouter(prefix="/api/preferences", tags=["preferences"])


@router.get("/theme", response_model=ThemePreference)
async def get_theme():
    """Theme flag shared by every user of this installation"""
    return ThemePreference(theme=result_store.theme())


@router.put("/theme", response_model=ThemePreference)
async def set_theme(preference: ThemePreference):
    return ThemePreference(theme=result_store.set_theme(preference.theme))
