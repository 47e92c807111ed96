"""Public share pages for link previews."""

from fastapi import APIRouter, Query, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from petport.errors import InvalidRequestError, NotFoundError
from petport.logging_config import get_logger
from petport.share.pages import CACHE_CONTROL, SHARE_KINDS, is_crawler, render_share_page, safe_redirect
from petport.storage.db import db
from petport.storage.models import Pet

logger = get_logger(__name__)

router = APIRouter(prefix="/share", tags=["share"])


@router.get("/{kind}")
async def share_page(
    kind: str,
    request: Request,
    pet_id: str | None = Query(default=None, alias="petId"),
    redirect: str | None = Query(default=None),
):
    """Open Graph page for crawlers; humans with a redirect go straight there."""
    if kind not in SHARE_KINDS:
        raise NotFoundError("Unknown share type")

    user_agent = request.headers.get("user-agent", "")
    crawler = is_crawler(user_agent)
    target = safe_redirect(redirect)

    logger.info("share_request", kind=kind, pet_id=pet_id, crawler=crawler, has_redirect=target is not None)

    if not crawler and target:
        return RedirectResponse(target, status_code=302)

    if not pet_id:
        raise InvalidRequestError("Pet ID is required")

    with db.session() as session:
        pet = session.query(Pet).filter(Pet.id == pet_id).first()
        if pet is None or not pet.is_public:
            raise NotFoundError("Pet not found")
        pet_name = pet.name

    return HTMLResponse(
        render_share_page(kind, pet_id, pet_name, redirect=target),
        headers={"Cache-Control": CACHE_CONTROL},
    )
