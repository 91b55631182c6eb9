from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from domovita_errors import (
    DomovitaError,
    InvalidInput,
    LoginError,
    NotAuthenticatedError,
    TransportError,
    UnexpectedStatus,
    UploadError,
)
from domovita_token import TokenExtractor, extract_csrf_token

MAX_IMAGE_BYTES = 10 * 1024 * 1024

_BASE_URL = "https://domovita.by"
_HOME_PATH = "/"
_AUTH_PATH = "/user/sign-in/auth"
_SHORT_LOGIN_PATH = "/user/sign-in/short-login"
_UPLOAD_PATH = "/ad/ajax-upload"

_BROWSER_HEADERS = {
    "Accept": (
        "text/html, application/xhtml+xml, application/xml; q=0.9, image/webp, "
        "image/apng, */*; q=0.8, application/signed-exchange; v=b3"
    ),
    "Accept-Encoding": "gzip, deflate",
    "Accept-Language": "ru-RU, ru; q=0.9, en-US; q=0.8, en; q=0.7",
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/74.0.3729.157 Safari/537.36"
    ),
}

log = logging.getLogger("domovita")
traffic_log = logging.getLogger("domovita.traffic")


def _browser_headers() -> Dict[str, str]:
    return dict(_BROWSER_HEADERS)


@dataclass(frozen=True)
class ClientConfig:
    """Fixed per-session settings.

    ``debug`` dumps raw requests and responses through the ``domovita.traffic``
    logger, to ``debug_file`` when set and to stderr otherwise.
    """

    base_url: str = _BASE_URL
    headers: Dict[str, str] = field(default_factory=_browser_headers)
    follow_redirects: bool = True
    debug: bool = False
    debug_file: Optional[str] = None
    timeout: Optional[float] = 60

    def url(self, path: str) -> str:
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"


def _snippet(resp: requests.Response, limit: int = 200) -> str:
    detail = (resp.text or "").strip()
    return detail[:limit]


def _body_preview(body: Any, limit: int = 500) -> str:
    if body is None:
        return ""
    if isinstance(body, bytes):
        return f"<{len(body)} bytes>"
    return str(body)[:limit]


def _log_traffic(response: requests.Response, *args: Any, **kwargs: Any) -> None:
    req = response.request
    traffic_log.debug(
        ">>> %s %s\n%s\n%s",
        req.method,
        req.url,
        "\n".join(f"{k}: {v}" for k, v in req.headers.items()),
        _body_preview(req.body),
    )
    traffic_log.debug(
        "<<< %s %s\n%s\n%s",
        response.status_code,
        response.reason,
        "\n".join(f"{k}: {v}" for k, v in response.headers.items()),
        _body_preview(response.text),
    )


class SiteSession:
    """Stateful domovita.by client: log in, upload images, log out.

    The session owns one ``requests.Session`` for its whole lifetime; the
    cookies collected during login are the ones later uploads are sent with.
    Instances are not safe for concurrent use.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        http: Optional[requests.Session] = None,
        token_extractor: TokenExtractor = extract_csrf_token,
    ) -> None:
        self.config = config or ClientConfig()
        self.http = http if http is not None else requests.Session()
        self.http.headers.update(self.config.headers)
        self.token_extractor = token_extractor
        self.authenticated = False
        self.csrf_token: Optional[str] = None
        self._debug_handler: Optional[logging.Handler] = None
        self._saved_traffic_level = logging.NOTSET
        if self.config.debug:
            self._enable_traffic_log()

    def __enter__(self) -> "SiteSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _enable_traffic_log(self) -> None:
        # Without a file the dump goes to stderr, not to whatever root logging allows.
        if self.config.debug_file:
            handler: logging.Handler = logging.FileHandler(self.config.debug_file, encoding="utf-8")
        else:
            handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(message)s"))
        traffic_log.addHandler(handler)
        self._debug_handler = handler
        self._saved_traffic_level = traffic_log.level
        traffic_log.setLevel(logging.DEBUG)
        self.http.hooks["response"].append(_log_traffic)

    def close(self) -> None:
        if self._debug_handler is not None:
            traffic_log.removeHandler(self._debug_handler)
            self._debug_handler.close()
            self._debug_handler = None
            traffic_log.setLevel(self._saved_traffic_level)
            hooks = self.http.hooks["response"]
            if _log_traffic in hooks:
                hooks.remove(_log_traffic)
        self.http.close()

    def _send(
        self,
        method: str,
        url: str,
        *,
        allow_redirects: Optional[bool] = None,
        **kwargs: Any,
    ) -> requests.Response:
        if allow_redirects is None:
            allow_redirects = self.config.follow_redirects
        try:
            return self.http.request(
                method,
                url,
                allow_redirects=allow_redirects,
                timeout=self.config.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

    @staticmethod
    def _ajax_headers(token: str) -> Dict[str, str]:
        return {
            "Accept": "*/*",
            "X-CSRF-Token": token,
            "X-Requested-With": "XMLHttpRequest",
        }

    def login(self, user: str, password: str) -> None:
        """Run the homepage/identify/password sequence.

        Either every step succeeds and the session becomes authenticated with
        the freshly scraped token, or the token, the flag and the cookie jar
        are left exactly as they were.
        """
        if not user or not password:
            raise InvalidInput("user and password must be non-empty")

        saved_cookies = list(self.http.cookies)
        try:
            token = self._sign_in(user, password)
        except Exception:
            self.http.cookies.clear()
            for cookie in saved_cookies:
                self.http.cookies.set_cookie(cookie)
            raise

        self.csrf_token = token
        self.authenticated = True
        log.info("Logged in to %s as %s", self.config.base_url, user)

    def _sign_in(self, user: str, password: str) -> str:
        home_url = self.config.url(_HOME_PATH)
        resp = self._send("GET", home_url)
        if resp.status_code != 200:
            raise UnexpectedStatus(home_url, resp.status_code, 200, step="homepage", detail=_snippet(resp))

        token = self.token_extractor(resp.text)
        log.debug("Got CSRF token %s...", token[:10])
        headers = self._ajax_headers(token)

        auth_url = self.config.url(_AUTH_PATH)
        data = {
            "_csrf": token,
            "isPush": "false",
            "AuthForm[view]": "_login_short",
            "AuthForm[email]": user,
        }
        resp = self._send("POST", auth_url, data=data, headers=headers)
        if resp.status_code != 200:
            raise LoginError(
                auth_url,
                resp.status_code,
                200,
                step="identify",
                detail=_snippet(resp),
                message="Login error: identify step failed",
            )

        short_login_url = self.config.url(_SHORT_LOGIN_PATH)
        data = {
            "_csrf": token,
            "ShortLoginForm[password]": password,
            "ShortLoginForm[rememberMe]": "1",
        }
        # The 302 is the success signal, so it must not be followed here.
        resp = self._send("POST", short_login_url, data=data, headers=headers, allow_redirects=False)
        if resp.status_code != 302:
            raise LoginError(
                short_login_url,
                resp.status_code,
                302,
                step="credential",
                detail=_snippet(resp),
                message="Login error: credential step failed",
            )
        return token

    def upload_image(self, path: str | Path) -> Any:
        """Upload one image and return the service's JSON reply as-is."""
        if not self.authenticated or not self.csrf_token:
            raise NotAuthenticatedError("Log in before uploading images")

        image = Path(path).expanduser()
        if not image.is_file():
            raise InvalidInput(f"Image file not found: {image}")
        size = image.stat().st_size
        if size > MAX_IMAGE_BYTES:
            raise InvalidInput(f"Image '{image.name}' is {size} bytes, the limit is {MAX_IMAGE_BYTES}")

        content_type = mimetypes.guess_type(image.name)[0] or "application/octet-stream"
        upload_url = self.config.url(_UPLOAD_PATH)
        try:
            handle = image.open("rb")
        except OSError as exc:
            raise InvalidInput(f"Cannot read image file {image}: {exc}") from exc

        with handle:
            files = {"images": (image.name, handle, content_type)}
            resp = self._send("POST", upload_url, files=files, headers=self._ajax_headers(self.csrf_token))

        if resp.status_code != 202:
            raise UploadError(
                upload_url,
                resp.status_code,
                202,
                step="upload",
                detail=_snippet(resp),
                message=f"Failed to upload '{image.name}'",
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise UploadError(
                upload_url,
                resp.status_code,
                202,
                step="upload",
                detail=_snippet(resp),
                message="Upload response is not valid JSON",
            ) from exc

        log.info("Uploaded %s (%d bytes)", image.name, size)
        return payload

    def logout(self) -> None:
        """Forget the login locally; persistent cookies are kept."""
        self.authenticated = False
        self.csrf_token = None
        self.http.cookies.clear_session_cookies()


__all__ = [
    "ClientConfig",
    "DomovitaError",
    "MAX_IMAGE_BYTES",
    "SiteSession",
]
