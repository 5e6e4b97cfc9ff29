"""Signing key publication"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from authserver.services.jwks_service import jwks_service

router = APIRouter()


@router.get("/jwks.json")
async def get_jwks():
    """
    Get JWKS (JSON Web Key Set)

    Resource servers verify access tokens offline against this key, but must
    still introspect to learn whether a token was revoked.
    """
    return JSONResponse(
        content=jwks_service.get_jwks(),
        headers={"Cache-Control": "public, max-age=3600"},
    )
