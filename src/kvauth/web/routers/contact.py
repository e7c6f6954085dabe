from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from kvauth.web.deps import AppDep, ClientIpDep
from kvauth.web.error_handlers import create_json_error_response
from kvauth.web.ratelimit import enforce_rate_limit

router = APIRouter(tags=["contact"])


class ContactRequest(BaseModel):
    """Contact form submission."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = ""
    email: str = ""
    message: str = ""
    turnstile_token: str = Field("", alias="turnstileToken")


@router.post("/api/contact")
async def contact(request: Request, body: ContactRequest, app: AppDep, ip: ClientIpDep) -> Response:
    """Forward a contact message to the site owner."""
    if rejection := await enforce_rate_limit(app, request, "contact"):
        return rejection

    delivered = await app.submit_contact(body.name, body.email, body.message, body.turnstile_token, ip)
    if not delivered:
        return create_json_error_response(502, "Failed to send message", "delivery_failed")
    return JSONResponse({"message": "Message sent!"})
