"""
Page routes.

Pages are small inline HTML documents; the landing page is public, the
dashboard sits behind the authentication gate.
"""

import html

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import HTMLResponse

from portal.auth.deps import CurrentSession, get_settings
from portal.core.settings import RouteSettings, Settings


def render_page(
    title: str,
    body: str,
    head: str = "",
    status_code: int = status.HTTP_200_OK,
) -> HTMLResponse:
    document = (
        "<!DOCTYPE html>\n"
        "<html>\n"
        f"<head><meta charset=\"utf-8\"><title>{html.escape(title)}</title>{head}</head>\n"
        f"<body>\n{body}\n</body>\n"
        "</html>\n"
    )
    return HTMLResponse(document, status_code=status_code)


def landing(request: Request, settings: Settings = Depends(get_settings)):
    login = html.escape(settings.routes.login)
    response = render_page(
        "Photos",
        f"<h1>Photos</h1>\n<p><a href=\"{login}\">Log in</a></p>",
    )
    request.app.state.csrf.issue(request, response)
    return response


def dashboard(
    request: Request,
    session: CurrentSession,
    settings: Settings = Depends(get_settings),
):
    csrf = request.app.state.csrf
    token = csrf.token_for(request)
    response = render_page(
        "Dashboard",
        "<h1>Dashboard</h1>\n"
        f"<p><a href=\"{html.escape(settings.routes.events)}\">Events</a></p>\n"
        f"<p><a href=\"{html.escape(settings.routes.logout)}\">Log out</a></p>",
        head=f"<meta name=\"csrf-token\" content=\"{html.escape(token)}\">",
    )
    csrf.attach(request, response, token)
    return response


def favicon():
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def not_found_page() -> HTMLResponse:
    return render_page(
        "Not found",
        "<h1>404</h1>\n<p>This page does not exist.</p>",
        status_code=status.HTTP_404_NOT_FOUND,
    )


def build_router(routes: RouteSettings) -> APIRouter:
    router = APIRouter(tags=["pages"])
    router.add_api_route(routes.favicon, favicon, methods=["GET"], name="favicon")
    router.add_api_route(routes.landing, landing, methods=["GET"], name="landing")
    router.add_api_route(routes.dashboard, dashboard, methods=["GET"], name="dashboard")
    return router
