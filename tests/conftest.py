from __future__ import annotations

from http.client import responses as reasons

import pytest
import requests
from requests.adapters import BaseAdapter
from requests.structures import CaseInsensitiveDict

from domovita import SiteSession

HOME_HTML = (
    "<!DOCTYPE html><html><head>"
    '<meta name="csrf-param" content="_csrf">'
    '<meta name="csrf-token" content="abc123">'
    "</head><body>domovita</body></html>"
)


class ScriptedAdapter(BaseAdapter):
    """Answers requests from a queue of canned replies and records them."""

    def __init__(self):
        super().__init__()
        self.replies = []
        self.requests = []
        self.jar = None

    def queue(self, status, body="", headers=None, cookies=None):
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.replies.append((status, body, headers or {}, cookies or {}))

    def fail(self, exc):
        self.replies.append(exc)

    def send(self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None):
        self.requests.append(request)
        if not self.replies:
            raise AssertionError(f"unexpected request: {request.method} {request.url}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        status, body, headers, cookies = reply
        # Stand-in for Set-Cookie; the canned responses carry no raw urllib3 object.
        for name, value in cookies.items():
            self.jar.set(name, value, domain="domovita.by", path="/")

        resp = requests.Response()
        resp.status_code = status
        resp.reason = reasons.get(status, "")
        resp._content = body
        resp._content_consumed = True
        resp.headers = CaseInsensitiveDict(headers)
        resp.encoding = "utf-8"
        resp.url = request.url
        resp.request = request
        return resp

    def close(self):
        pass


def queue_login(adapter, token="abc123", cookies=None):
    adapter.queue(200, HOME_HTML.replace("abc123", token), cookies=cookies or {"PHPSESSID": "s1"})
    adapter.queue(200, '{"success":true}')
    adapter.queue(302, "", headers={"Location": "/"})


@pytest.fixture
def adapter():
    return ScriptedAdapter()


@pytest.fixture
def http(adapter):
    s = requests.Session()
    s.mount("https://", adapter)
    s.mount("http://", adapter)
    adapter.jar = s.cookies
    return s


@pytest.fixture
def session(http):
    with SiteSession(http=http) as s:
        yield s


@pytest.fixture
def logged_in(session, adapter):
    queue_login(adapter)
    session.login("user@example.com", "secret")
    adapter.requests.clear()
    return session


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "photo.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0" + b"\x00" * 128)
    return path
