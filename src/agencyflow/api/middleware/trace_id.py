"""Per-request trace id, echoed back and bound into the log context."""

from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from agencyflow.logging_config import bind_request_context, clear_request_context

TRACE_HEADER = "X-Trace-Id"


def new_trace_id() -> str:
    return "trc_" + uuid4().hex[:16]


class TraceIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        trace_id = request.headers.get(TRACE_HEADER) or new_trace_id()
        request.state.trace_id = trace_id
        clear_request_context()
        bind_request_context(trace_id)
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers[TRACE_HEADER] = trace_id
        return response
