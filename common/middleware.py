import json
import logging
import traceback

from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger("common")

SENSITIVE_FIELDS = {"password", "current_password", "new_password", "refresh", "access"}


class GlobalRequestLoggingMiddleware(MiddlewareMixin):
    """
    Logs the start and end of each request, and any unhandled exception, as JSON lines.
    """

    def process_request(self, request):
        logger.info(json.dumps({
            "type": "request_start",
            "user": self._get_user(request),
            "method": request.method,
            "path": request.path,
            "query_params": request.GET.dict(),
            "body": self._get_body(request),
        }, default=str))

    def process_response(self, request, response):
        logger.info(json.dumps({
            "type": "request_end",
            "user": self._get_user(request),
            "method": request.method,
            "path": request.path,
            "status_code": response.status_code,
        }))
        return response

    def process_exception(self, request, exception):
        logger.error(json.dumps({
            "type": "exception",
            "user": self._get_user(request),
            "method": request.method,
            "path": request.path,
            "query_params": request.GET.dict(),
            "exception": str(exception),
            "traceback": traceback.format_exc(),
        }))
        return None

    def _get_user(self, request):
        user = getattr(request, "user", None)
        if user is None or not user.is_authenticated:
            return "Anonymous"
        return user.get_username()

    def _get_body(self, request):
        if request.content_type != "application/json":
            return {}
        try:
            if request.body:
                body = json.loads(request.body.decode("utf-8"))
            else:
                return {}
        except (ValueError, UnicodeDecodeError):
            return "<unreadable body>"
        if isinstance(body, dict):
            return {k: ("***" if k in SENSITIVE_FIELDS else v) for k, v in body.items()}
        return body
