"""Browser configuration script."""

import json

from fastapi import APIRouter
from fastapi.responses import Response

from minimalblog.config import get_settings

router = APIRouter(tags=["env"])


@router.get("/env.js", include_in_schema=False)
async def env_js() -> Response:
    """Assign the public store connection parameters to ``window.env``.

    Everything here is readable by any visitor, the shared secret code
    included.
    """
    settings = get_settings()
    values = {
        "FIREBASE_API_KEY": settings.firebase_api_key,
        "FIREBASE_AUTH_DOMAIN": settings.firebase_auth_domain,
        "FIREBASE_DATABASE_URL": settings.firebase_database_url,
        "FIREBASE_PROJECT_ID": settings.firebase_project_id,
        "FIREBASE_STORAGE_BUCKET": settings.firebase_storage_bucket,
        "FIREBASE_MESSAGING_SENDER_ID": settings.firebase_messaging_sender_id,
        "FIREBASE_APP_ID": settings.firebase_app_id,
        "GEMINI_API_KEY": settings.gemini_api_key,
        "SECRET_CODE": settings.secret_code,
    }
    script = f"window.env = {json.dumps(values, indent=2)};\n"
    return Response(content=script, media_type="application/javascript")
