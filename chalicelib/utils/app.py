import functools
import uuid
from typing import Callable

from botocore.exceptions import ClientError
from chalice import Response

from chalicelib.constants.constants import INTERNAL_SERVER_ERROR
from chalicelib.utils.exceptions import ApiException, UpstreamException
from chalicelib.utils.logger import logger, log_exception


def error_response(error: Exception, msg: str = "", status_code: int = 400, *args, **kwargs):
    log_exception(error=error, msg=msg, status_code=status_code, *args, **kwargs)
    return Response(
        body={
            'message': str(error) if isinstance(error, ApiException) else INTERNAL_SERVER_ERROR,
            'error': getattr(error, 'KIND', 'internal_error'),
            'exception': error.__class__.__name__,
            'error_id': getattr(logger, 'current_request_id'),
            'level': getattr(error, 'LEVEL', 'exception')
        },
        status_code=status_code,
        headers={'Content-Type': 'application/json'}
    )


def request_exception_handler(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        logger.current_request_id = str(uuid.uuid4()).split('-')[4]
        try:
            logger.info(f'Calling function {func.__name__}')
            return func(*args, **kwargs)
        except ApiException as api_error:
            return error_response(
                error=api_error,
                msg=f'function = {func.__name__} , error = {api_error}',
                status_code=api_error.STATUS_CODE)
        except ClientError as client_error:
            aws_message = client_error.response.get('Error', {}).get('Message', str(client_error))
            return error_response(
                error=UpstreamException(aws_message),
                msg=f'function = {func.__name__}, error = {client_error}',
                status_code=UpstreamException.STATUS_CODE)
        except Exception as exception:
            return error_response(
                error=exception,
                msg=f'function = {func.__name__}, error = {exception}',
                status_code=500)
    return result


def log_start_finish(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        logger.info(f'{func.__name__} ::: started')
        response = func(*args, **kwargs)
        logger.info(f'{func.__name__} ::: finished')
        return response
    return result
