"""Form fuzzing: fill every field of every in-scope form with the payload."""

from concurrent.futures import ThreadPoolExecutor, wait

import httpx

from log4scan.handlers.base import Handler, HandlerContext
from log4scan.parsers.forms import FormData, extract_forms, resolve_action, same_host


class FormSubmitHandler(Handler):
    """Submits forms found in HTML responses.

    Submissions run on ``pool``, shared by every worker of the scan, so a
    page with many forms cannot push concurrency past the pool size. The
    handler waits for its own submissions before returning.
    """

    name = "Form fuzzing"

    def __init__(self, pool: ThreadPoolExecutor):
        self.pool = pool

    def matches(self, response: httpx.Response) -> bool:
        ctype = response.headers.get("content-type", "").lower()
        if "text/html" not in ctype and "application/xhtml" not in ctype:
            return False
        return "<form" in response.text.lower()

    def handle(self, ctx: HandlerContext) -> int:
        page_url = str(ctx.response.url)
        forms = extract_forms(ctx.response.text)
        if not forms:
            ctx.debug(f"No forms found in response from {page_url}")
            return 0

        futures = []
        for form in forms:
            try:
                action = resolve_action(page_url, form)
            except ValueError:
                continue
            if not same_host(action, ctx.target):
                ctx.debug(f"Form action {action} out of scope")
                continue
            futures.append(self.pool.submit(self._submit, ctx, form, action))

        done, _ = wait(futures)
        return sum(1 for f in done if f.result())

    def _submit(self, ctx: HandlerContext, form: FormData, action: str) -> bool:
        values = {name: ctx.payload for name in form.inputs}
        headers = self.carry_headers(ctx.request)
        try:
            if form.method == "GET":
                request = ctx.client.build_request("GET", action, params=values, headers=headers)
            else:
                request = ctx.client.build_request(form.method, action, data=values, headers=headers)
        except (httpx.InvalidURL, ValueError) as exc:
            ctx.debug(f"Skipping form {action}: {exc}")
            return False

        ctx.debug(f"Checking {ctx.payload} for {form.method} {action}")
        try:
            ctx.client.send(request)
        except httpx.HTTPError as exc:
            ctx.debug(f"Form submit to {action} failed: {exc}")
        return True
