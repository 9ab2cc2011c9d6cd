from .logger import setup_logging
from .error_handlers import (
    ActionResult,
    AuthError,
    ErrorKind,
    NetworkError,
    NotFoundError,
    RecruitingError,
    UnknownError,
    ValidationError,
    api_retry_handler,
)

__all__ = [
    # logger.py
    'setup_logging',

    # error_handlers.py
    'ActionResult',
    'AuthError',
    'ErrorKind',
    'NetworkError',
    'NotFoundError',
    'RecruitingError',
    'UnknownError',
    'ValidationError',
    'api_retry_handler',
]
