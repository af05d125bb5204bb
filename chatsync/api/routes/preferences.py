# chatsync/api/routes/preferences.py

from fastapi import APIRouter, HTTPException

from chatsync.api.utils import require_client
from chatsync.models import PreferencesUpdate

router = APIRouter()


def _preferences_body(client) -> dict:
    return {"userName": client.user_name, "darkMode": client.dark_mode}


@router.get("/preferences")
async def get_preferences():
    return _preferences_body(require_client())


@router.put("/preferences")
async def update_preferences(update: PreferencesUpdate):
    """
    Update display name and/or dark mode.

    Raises:
        HTTPException: 400 if userName is given but blank
    """
    client = require_client()
    if update.user_name is not None and not client.set_user_name(update.user_name):
        raise HTTPException(status_code=400, detail="User name required")
    if update.dark_mode is not None:
        client.set_dark_mode(update.dark_mode)
    return _preferences_body(client)
