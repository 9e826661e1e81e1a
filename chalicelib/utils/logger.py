import json
import os
from copy import deepcopy
from datetime import datetime, date
from decimal import Decimal
from logging import setLoggerClass, Logger, NOTSET, getLogger, StreamHandler, Formatter
from time import mktime, struct_time

from chalice.app import Request

SENSITIVE_BODY_FIELDS = ('password', 'refresh_token', 'token')


class CustomLogger(Logger):

    def __init__(self, name, level=NOTSET):
        self.current_request_id = None
        super(CustomLogger, self).__init__(name, level)

    def _log(self, level, msg, args, **kwargs):
        # all level methods, exception() included, go through _log
        super(CustomLogger, self)._log(level, f"[{self.current_request_id}] : {msg}", args, **kwargs)


def conf_logger(level):
    setLoggerClass(CustomLogger)
    logger_ = getLogger(__name__)
    console_handler = StreamHandler()
    console_handler.setLevel(level)
    formatter = Formatter('%(asctime)s - %(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    if logger_.hasHandlers():
        logger_.handlers.clear()
    logger_.addHandler(console_handler)
    logger_.setLevel(level)
    return logger_


logger = conf_logger(os.environ.get('LOG_LEVEL', 'DEBUG').upper())


class CustomJSONEncoder(json.JSONEncoder):
    def default(self, value):
        if isinstance(value, datetime):
            return str(value)
        if isinstance(value, date):
            return str(value)
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, struct_time):
            return str(datetime.fromtimestamp(mktime(value)))
        if isinstance(value, bytes):
            return f'<{len(value)} bytes>'
        return super(CustomJSONEncoder, self).default(value)


def mask_body(raw_body: bytes) -> str:
    try:
        body = json.loads(raw_body)
    except ValueError:
        return f'<{len(raw_body)} bytes>'
    if isinstance(body, dict):
        for field in SENSITIVE_BODY_FIELDS:
            if field in body:
                body[field] = '***'
    return json.dumps(body, cls=CustomJSONEncoder)


def log_request(request: Request):
    request_dict = deepcopy(request.to_dict())
    request_dict['headers'].pop('authorization', None)
    request_dict.pop('auth_result', None)
    logger.info(f"Request: {json.dumps(request_dict, cls=CustomJSONEncoder)}")
    if request_dict['headers'].get('content-type', '').startswith('application/json') and request.raw_body:
        logger.debug(f"Request body: {mask_body(request.raw_body)}")


def log_exception(error: Exception, status_code: int = 400, msg: str = "", *args, **kwargs):
    allowed_log_levels = {
        'info': logger.info,
        'warning': logger.warning,
        'debug': logger.debug,
        'error': logger.error,
        'exception': logger.exception,
    }
    level = getattr(error, 'LEVEL', 'exception')
    log_level = 'exception' if level not in allowed_log_levels.keys() else level
    allowed_log_levels[log_level](msg=json.dumps({
        'error': str(error),
        'exception': error.__class__.__name__,
        'message': str(msg),
        'level': log_level,
        'status_code': status_code,
        'args': args,
        'kwargs': kwargs
    }, cls=CustomJSONEncoder))
