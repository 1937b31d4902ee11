from .request_logging import REQUEST_ID_HEADER, RequestLoggingMiddleware

__all__ = ["REQUEST_ID_HEADER", "RequestLoggingMiddleware"]
