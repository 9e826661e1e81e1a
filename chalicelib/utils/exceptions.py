__all__ = ["ApiException", "ValidationException", "NotAuthorizedException", "AccessDenied", "RecordNotFound",
           "ConflictException", "UpstreamException", "NumberOfRetriesExceeded"]


class ApiException(Exception):
    STATUS_CODE = 500
    KIND = 'internal_error'
    LEVEL = 'exception'


# Validations exceptions
class ValidationException(ApiException):
    STATUS_CODE = 400
    KIND = 'validation_error'
    LEVEL = 'warning'


class NotAuthorizedException(ApiException):
    STATUS_CODE = 401
    KIND = 'unauthorized'
    LEVEL = 'warning'


# Generic Exceptions
class AccessDenied(ApiException):
    STATUS_CODE = 403
    KIND = 'forbidden'
    LEVEL = 'warning'


# DynamoDB exceptions
class RecordNotFound(ApiException):
    STATUS_CODE = 404
    KIND = 'not_found'
    LEVEL = 'warning'


class ConflictException(ApiException):
    STATUS_CODE = 409
    KIND = 'conflict'
    LEVEL = 'warning'


class UpstreamException(ApiException):
    """
    AWS (DynamoDB, Cognito, S3) returned an error we can't recover from
    """
    STATUS_CODE = 500
    KIND = 'upstream_error'
    LEVEL = 'error'


# DB Performance Exception
class NumberOfRetriesExceeded(UpstreamException):
    pass
