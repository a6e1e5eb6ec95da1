"""Authentication Middleware"""
from jose import JWTError
from fastapi import HTTPException, status, Depends
from fastapi.security import HTTPBearer

from app.auth.models import JWTPayload
from app.auth.jwt_verifier import JWTVerifier
from app.auth.permissions_manager import PermissionsManager
from app.config import JWT_ALGORITHM, KEYCLOAK_REALM, KEYCLOAK_URL


# Initialize components
security = HTTPBearer()
jwt_verifier = JWTVerifier(
    keycloak_url=KEYCLOAK_URL,
    realm=KEYCLOAK_REALM,
    algorithm=JWT_ALGORITHM
)
permissions_manager = PermissionsManager()


def _nanny_id_claim(payload: dict):
    value = payload.get("nannyId")
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: malformed nannyId"
        )


async def verify_token(credentials = Depends(security)) -> JWTPayload:
    """
    Verify JWT token from Keycloak and extract payload.

    Expected JWT claims:
    - sub: user_id
    - name / preferred_username: display name
    - nannyId: nanny record of the caller (nanny role only)
    - realm_access.roles: list of role names
    """
    token = credentials.credentials

    try:
        payload = jwt_verifier.verify_and_decode(token)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}"
        )

    roles = payload.get("realm_access", {}).get("roles", [])
    nanny_id = _nanny_id_claim(payload)
    if "nanny" in roles and nanny_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing nannyId"
        )

    return JWTPayload(
        sub=payload["sub"],
        name=payload.get("name") or payload.get("preferred_username", ""),
        nanny_id=nanny_id,
        roles=roles,
        permissions=permissions_manager.get_permissions_for_roles(roles),
        iat=payload.get("iat"),
        exp=payload.get("exp")
    )


def check_permission(jwt_payload: JWTPayload, required_permission: str):
    """
    Check if user has required permission.

    Args:
        jwt_payload: JWT payload containing user permissions
        required_permission: Permission string to check

    Raises:
        HTTPException: If user lacks required permission
    """
    if required_permission not in jwt_payload.permissions:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Missing required permission: {required_permission}"
        )
