from __future__ import annotations

from typing import Any

import httpx

Reply = Any  # body | (status, body) | httpx.Response | callable(request) -> any of those


def _target(request: httpx.Request) -> str:
    return f"{request.url.host}{request.url.path}"


class FakeUpstream:
    """
    Canned third-party responses for ``httpx.MockTransport``.

    Routes match on ``host + path`` prefixes in the order they were added.
    A route with several replies hands them out in turn and then repeats
    the last one.
    """

    def __init__(self):
        self.routes: list[tuple[str, list[Reply]]] = []
        self.requests: list[httpx.Request] = []

    def add(self, prefix: str, *replies: Reply) -> None:
        self.routes.append((prefix, list(replies) or [{}]))

    def calls(self, prefix: str) -> list[httpx.Request]:
        return [r for r in self.requests if _target(r).startswith(prefix)]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        target = _target(request)
        for prefix, replies in self.routes:
            if not target.startswith(prefix):
                continue
            reply = replies.pop(0) if len(replies) > 1 else replies[0]
            if callable(reply):
                reply = reply(request)
            if isinstance(reply, httpx.Response):
                return reply
            if isinstance(reply, tuple):
                status, body = reply
            else:
                status, body = 200, reply
            if isinstance(body, str):
                return httpx.Response(status, text=body)
            return httpx.Response(status, json=body)
        return httpx.Response(404, json={"error": f"no fake route for {target}"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def network_down(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def query(request: httpx.Request) -> dict[str, str]:
    return dict(request.url.params)
