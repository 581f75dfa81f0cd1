# share_routes.py

from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, Response

from audit import ActorContext
from file_service import FileService
from records import FileRecord
from schemas import MessageOut, ShareCreate, ShareOut, SharedFileOut

router = APIRouter(prefix="/api", tags=["Secure Sharing"])

AUDIT_WARNING_HEADER = "X-Audit-Warning"


# ─── DEPENDENCIES ─────────────────────────────────────────────

def get_service(request: Request) -> FileService:
    return request.app.state.service


def get_client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_actor(request: Request) -> ActorContext:
    return ActorContext.from_headers(get_client_ip(request), request.headers.get("User-Agent"))


def flag_unlogged(response: Response, logged: bool) -> None:
    if not logged:
        response.headers[AUDIT_WARNING_HEADER] = "unlogged"


def attachment(file: FileRecord, logged: bool) -> Response:
    """Raw ciphertext as a download."""
    response = Response(
        content=file.ciphertext,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{quote(file.name, safe="")}"'},
    )
    flag_unlogged(response, logged)
    return response


# ─── CREATE SHARE ─────────────────────────────────────

@router.post("/files/share", response_model=ShareOut, status_code=201)
def create_share(
    req: ShareCreate,
    response: Response,
    service: FileService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    outcome = service.share(
        req.file_id,
        req.duration_symbol,
        password=req.password,
        recipient_email=str(req.recipient_email) if req.recipient_email else None,
        actor=actor,
    )
    flag_unlogged(response, outcome.logged)
    share = outcome.value
    return ShareOut(id=share.id, token=share.token, expires_at=share.expires_at)


# ─── REVOKE ─────────────────────────────────────────

@router.delete("/shares/{share_id}", response_model=MessageOut)
def revoke_share(
    share_id: int,
    response: Response,
    service: FileService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    outcome = service.revoke_share(share_id, actor=actor)
    flag_unlogged(response, outcome.logged)
    return MessageOut(message="Share link revoked")


# ─── REDEEM ─────────────────────────────────────────

@router.get("/share/{token}", response_model=SharedFileOut)
def access_shared_file(
    token: str,
    response: Response,
    password: Optional[str] = Query(None),
    service: FileService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    grant = service.redeem(token, password=password, actor=actor)
    flag_unlogged(response, grant.logged)
    file = grant.file
    # the key is only released past the password check
    return SharedFileOut(
        id=file.id, name=file.name, size=file.size, created_at=file.created_at, key=file.encryption_key,
    )


@router.get("/share/{token}/download")
def download_shared_file(
    token: str,
    password: Optional[str] = Query(None),
    service: FileService = Depends(get_service),
    actor: ActorContext = Depends(get_actor),
):
    grant = service.redeem(token, password=password, actor=actor, download=True)
    return attachment(grant.file, grant.logged)
