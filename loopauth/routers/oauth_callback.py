"""
OAuth Callback Router - the loopback endpoint the provider redirects to.

Endpoints:
==========
- GET /auth/{provider}/callback → validate state, hand the result to the login flow

The app serving this router carries the current FlowState in
`app.state.flow`. Every request is answered immediately; the outcome is
delivered to the waiting login flow through the one-shot rendezvous.

Security:
=========
- CSRF protection via state parameter (constant-time compare)
- A state mismatch aborts the login attempt, it is never retried
- Listener is bound to the loopback interface only
"""

import html
import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse

from loopauth.core.security import states_match
from loopauth.environments.base import (
    CallbackError,
    StateMismatchError,
    UserDeniedError,
)
from loopauth.services.flow_state import CallbackResult, FlowState


logger = logging.getLogger("loopauth.routers.oauth_callback")


# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/auth", tags=["oauth-callback"])


# ---------------------------------------------------------------------------
# PAGES
# ---------------------------------------------------------------------------

def render_page(title: str, message: str) -> str:
    """Small self-contained HTML page shown in the user's browser."""
    return f"""<!DOCTYPE html>
<html>
<head><title>{html.escape(title)}</title>
<style>
body {{ font-family: sans-serif; display: flex; justify-content: center;
       align-items: center; height: 100vh; margin: 0; background: #f5f5f5; }}
.box {{ background: white; padding: 40px; border-radius: 8px;
        box-shadow: 0 2px 10px rgba(0,0,0,0.1); text-align: center; }}
</style>
</head>
<body><div class="box"><h2>{html.escape(title)}</h2><p>{html.escape(message)}</p></div></body>
</html>"""


def _page(title: str, message: str, status_code: int) -> HTMLResponse:
    return HTMLResponse(render_page(title, message), status_code=status_code)


# ---------------------------------------------------------------------------
# ENDPOINTS
# ---------------------------------------------------------------------------


@router.get("/{provider}/callback", response_class=HTMLResponse)
async def oauth_callback(
    request: Request,
    provider: str,
    state: Optional[str] = Query(None, description="CSRF state token"),
    code: Optional[str] = Query(None, description="Authorization code"),
    error: Optional[str] = Query(None, description="Error from the provider"),
    error_description: Optional[str] = Query(None, description="Error details"),
):
    """
    Handle the provider redirect for the current login attempt.

    Outcomes:
        - state mismatch → flow fails with StateMismatchError, HTTP 400
        - error param    → flow fails with UserDeniedError, HTTP 400
        - code param     → flow receives the code, HTTP 200
        - neither        → flow fails with CallbackError, HTTP 400
        - already resolved with a matching state → HTTP 409, result untouched
    """
    flow: FlowState = request.app.state.flow

    if provider != flow.provider:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    rendezvous = flow.rendezvous

    # Validate state token (CSRF protection)
    if not states_match(flow.state, state):
        logger.warning(f"OAuth state mismatch on {provider} callback")
        rendezvous.deliver(CallbackResult(
            error=StateMismatchError("State mismatch in OAuth callback; login aborted"),
        ))
        return _page(
            "State mismatch",
            "This sign-in link does not belong to the current login attempt.",
            status.HTTP_400_BAD_REQUEST,
        )

    if error:
        logger.warning(f"OAuth error from {provider}: {error} - {error_description}")
        rendezvous.deliver(CallbackResult(error=UserDeniedError(error, error_description)))
        return _page(
            "Authorization failed",
            f"{provider.title()} reported: {error_description or error}",
            status.HTTP_400_BAD_REQUEST,
        )

    if not code:
        logger.warning(f"No authorization code in {provider} callback")
        rendezvous.deliver(CallbackResult(
            error=CallbackError("No authorization code received"),
        ))
        return _page(
            "Authorization failed",
            "No authorization code received.",
            status.HTTP_400_BAD_REQUEST,
        )

    if not rendezvous.deliver(CallbackResult(code=code)):
        logger.info(f"Ignoring duplicate {provider} callback; login already completed")
        return _page(
            "Already completed",
            "This login attempt has already finished. You can close this window.",
            status.HTTP_409_CONFLICT,
        )

    logger.info(f"Received authorization code on {provider} callback")
    return _page(
        f"{provider.title()} authentication successful!",
        "You can close this window and return to the application.",
        status.HTTP_200_OK,
    )
