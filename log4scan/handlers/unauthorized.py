"""Auth fuzzing: replay a challenged request with the payload as credentials."""

import httpx

from log4scan.handlers.base import Handler, HandlerContext


class UnauthorizedHandler(Handler):

    name = "Auth fuzzing"

    def matches(self, response: httpx.Response) -> bool:
        return "www-authenticate" in response.headers

    def handle(self, ctx: HandlerContext) -> int:
        challenge = ctx.response.headers.get("WWW-Authenticate", "").strip()
        request = self.clone(ctx.client, ctx.request)

        if challenge.lower().startswith("basic"):
            ctx.debug(f"Checking {ctx.payload} for {request.url} with basic auth")
            auth = httpx.BasicAuth(ctx.payload, ctx.payload)
        else:
            ctx.debug(f"Checking {ctx.payload} for {request.url} with bearer")
            request.headers["Authorization"] = f"Bearer {ctx.payload}"
            # keep the client's --basic-auth from overwriting the bearer token
            auth = None

        try:
            ctx.client.send(request, auth=auth)
        except httpx.HTTPError as exc:
            ctx.debug(f"Auth fuzzing request to {request.url} failed: {exc}")
        return 1
