"""Browser sign-in with Strava: authorize once, then store the athlete as an owner.

Register a Strava API app at https://www.strava.com/settings/api with the
callback domain ``localhost`` and put its id and secret in config.yaml (or
STRAVA_CLIENT_ID / STRAVA_CLIENT_SECRET).
"""

import webbrowser
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlparse

import requests
from stravalib import Client, exc

from fitrecap.errors import AuthenticationExpired
from fitrecap.ingest.strava_client import _app_credentials
from fitrecap.models import Owner
from fitrecap.store import save_owner

CALLBACK_PORT = 8090
CALLBACK_PATH = "/callback"
SCOPES = ["read", "activity:read_all"]

_PAGE = "<html><body><h2>{}</h2><p>You can close this tab.</p></body></html>"


class _CallbackHandler(BaseHTTPRequestHandler):
    code = None
    error = None

    def do_GET(self):
        parsed = urlparse(self.path)
        if parsed.path != CALLBACK_PATH:
            self.send_response(404)
            self.end_headers()
            return

        params = parse_qs(parsed.query)
        type(self).code = params.get("code", [None])[0]
        type(self).error = params.get("error", [None])[0]
        ok = type(self).code is not None
        self.send_response(200 if ok else 400)
        self.send_header("Content-Type", "text/html")
        self.end_headers()
        message = "Connected to FitRecap" if ok else f"Strava said: {type(self).error or 'no code'}"
        self.wfile.write(_PAGE.format(message).encode())

    def log_message(self, format, *args):
        pass


def wait_for_code(client: Client, client_id: int, port: int = CALLBACK_PORT,
                  open_browser=webbrowser.open) -> str:
    """Send the athlete to Strava and block until the redirect brings a code back."""
    redirect_uri = f"http://localhost:{port}{CALLBACK_PATH}"
    url = client.authorization_url(client_id=client_id, redirect_uri=redirect_uri,
                                   scope=SCOPES, approval_prompt="auto")

    _CallbackHandler.code = _CallbackHandler.error = None
    server = HTTPServer(("localhost", port), _CallbackHandler)
    print(f"Opening Strava sign-in. If no browser opens, visit:\n  {url}\n")
    open_browser(url)
    try:
        server.handle_request()
    finally:
        server.server_close()

    if not _CallbackHandler.code:
        raise AuthenticationExpired(
            f"Strava authorization was not granted ({_CallbackHandler.error or 'no code'})")
    return _CallbackHandler.code


def owner_from_token(token_response, athlete, owner_id: str | None = None) -> Owner:
    """Build the owner row for a freshly authorized athlete.

    The owner id defaults to the Strava athlete id.
    """
    name = " ".join(p for p in (athlete.firstname, athlete.lastname) if p) or None
    return Owner(
        id=owner_id or str(athlete.id),
        strava_athlete_id=athlete.id,
        access_token=token_response["access_token"],
        refresh_token=token_response["refresh_token"],
        token_expires_at=int(token_response["expires_at"]),
        athlete_name=name,
        athlete_profile=getattr(athlete, "profile", None),
    )


def authorize_owner(conn, config, owner_id: str | None = None, client_factory=Client,
                    get_code=wait_for_code) -> Owner:
    """Run the sign-in flow and store the resulting owner."""
    client_id, client_secret = _app_credentials(config)
    code = get_code(client_factory(), client_id)

    try:
        token_response = client_factory().exchange_code_for_token(
            client_id=client_id, client_secret=client_secret, code=code)
        athlete = client_factory(access_token=token_response["access_token"]).get_athlete()
    except (exc.Fault, requests.RequestException) as e:
        raise AuthenticationExpired(f"Strava token exchange failed: {e}") from e

    owner = owner_from_token(token_response, athlete, owner_id)
    save_owner(conn, owner)
    return owner
