import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from datepoll.dependencies import get_client_ip


class HTTPLogMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, logger_name: str = "datepoll.http"):
        super().__init__(app)
        self._logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next):
        start = time.monotonic()
        path = request.url.path
        method = request.method
        client = get_client_ip(request)
        self._logger.debug("http.request start method=%s path=%s client=%s", method, path, client)
        try:
            response: Response = await call_next(request)
        except Exception as e:
            dur_ms = int((time.monotonic() - start) * 1000)
            self._logger.warning("http.request error method=%s path=%s client=%s dur_ms=%s err=%r",
                                 method, path, client, dur_ms, e)
            raise
        dur_ms = int((time.monotonic() - start) * 1000)
        level = logging.INFO if response.status_code == 429 else logging.DEBUG
        self._logger.log(level, "http.request end method=%s path=%s client=%s status=%s dur_ms=%s",
                         method, path, client, response.status_code, dur_ms)
        return response
