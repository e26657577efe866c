from .builder import make_dict_config, setup_logging
from .filters import RequestIdFilter, RedactFilter, get_request_id, set_request_id, reset_request_id
from .middleware import RequestIDMiddleware

__all__ = [
    "make_dict_config",
    "setup_logging",
    "RequestIdFilter",
    "RedactFilter",
    "get_request_id",
    "set_request_id",
    "reset_request_id",
    "RequestIDMiddleware",
]
