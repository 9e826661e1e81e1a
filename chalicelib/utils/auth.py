import functools
from datetime import datetime
from typing import NamedTuple, Dict

from botocore.exceptions import ClientError
from chalice.app import Request

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import (ROLE_ADMIN, ROLE_CLIENT, NO_TOKEN_PROVIDED, INVALID_TOKEN, ADMIN_ONLY,
                                            NOT_OWNER, USER_INACTIVE)
from chalicelib.utils import exceptions as utils_exceptions, db as utils_db
from chalicelib.utils.boto_clients import cognito_client
from chalicelib.utils.logger import log_request, logger, log_exception

COGNITO_INVALID_TOKEN_CODES = ('NotAuthorizedException', 'UserNotFoundException', 'InvalidParameterException')


class Caller(NamedTuple):
    user_id: str
    email: str
    role: str = ROLE_CLIENT
    first_name: str = ''
    last_name: str = ''
    phone: str = ''
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def get_bearer_token(request: Request) -> str:
    header = request.headers.get('authorization') or ''
    token = header[len('Bearer '):] if header.lower().startswith('bearer ') else header
    if not token.strip():
        raise utils_exceptions.NotAuthorizedException(NO_TOKEN_PROVIDED)
    return token.strip()


def identity_attributes(cognito_user: Dict) -> Dict:
    attributes = {attr['Name']: attr['Value'] for attr in cognito_user.get('UserAttributes',
                                                                           cognito_user.get('Attributes', []))}
    attributes['user_id'] = attributes.get('sub') or cognito_user.get('Username')
    attributes['username'] = cognito_user.get('Username')
    return attributes


def get_identity(token: str) -> Dict:
    """
    Validates access token with Cognito and returns the user attributes
    (sub, email, given_name, family_name, picture ...) with user_id=sub
    """
    try:
        cognito_user = cognito_client.get_user(AccessToken=token)
    except ClientError as error:
        if error.response.get('Error', {}).get('Code') in COGNITO_INVALID_TOKEN_CODES:
            setattr(error, 'LEVEL', 'warning')
            log_exception(error, 401, f"get_identity ::: {error}")
            raise utils_exceptions.NotAuthorizedException(INVALID_TOKEN)
        raise
    return identity_attributes(cognito_user)


def default_profile(identity: Dict) -> Dict:
    now = datetime.now().isoformat(timespec="seconds")
    return {
        'id_': identity['user_id'],
        'email': identity.get('email', ''),
        'first_name': identity.get('given_name', ''),
        'last_name': identity.get('family_name', ''),
        'phone': identity.get('phone_number', ''),
        'role': ROLE_CLIENT,
        'is_active': True,
        'created_at': now,
        'updated_at': now,
    }


def resolve_profile(identity: Dict) -> Dict:
    """
    Fetches the caller's profile, creating a default CLIENT profile on first access.
    Any storage failure falls back to the default attributes instead of failing the request
    """
    partkey = keys_structure.user_profiles_pk
    sortkey = keys_structure.user_profiles_sk.format(user_id=identity['user_id'])
    try:
        profile = utils_db.find_db_item(partkey, sortkey)
        if profile is None:
            profile = default_profile(identity)
            utils_db.put_db_record({'partkey': partkey, 'sortkey': sortkey, 'record_type': 'user_profile',
                                    **profile})
            logger.info(f"resolve_profile ::: default profile created for user_id={identity['user_id']}")
        return profile
    except (ClientError, utils_exceptions.ApiException) as error:
        setattr(error, 'LEVEL', 'warning')
        log_exception(error, 200, f"resolve_profile ::: falling back to default profile for "
                                  f"user_id={identity['user_id']}")
        return default_profile(identity)


def get_caller(request: Request) -> Caller:
    identity = get_identity(get_bearer_token(request))
    profile = resolve_profile(identity)
    return Caller(
        user_id=identity['user_id'],
        email=profile.get('email') or identity.get('email', ''),
        role=profile.get('role') or ROLE_CLIENT,
        first_name=profile.get('first_name', ''),
        last_name=profile.get('last_name', ''),
        phone=profile.get('phone', ''),
        is_active=profile.get('is_active', True) is not False,
    )


def _authenticate_request(request: Request) -> Caller:
    lambda_context = getattr(request, 'lambda_context', None)
    if lambda_context is not None and getattr(lambda_context, 'aws_request_id', None):
        logger.current_request_id = lambda_context.aws_request_id.split('-')[-1]
    log_request(request)
    caller = get_caller(request)
    if not caller.is_active:
        raise utils_exceptions.AccessDenied(USER_INACTIVE)
    setattr(request, 'auth_result', caller)
    logger.info(f'authenticate ::: SUCCESS, user_id={caller.user_id}, role={caller.role}')
    return caller


def authenticate(func):
    """
    Wrapper for functions which require user's authentication
    """

    @functools.wraps(func)
    def result_auth(request, *args, **kwargs):
        _authenticate_request(request)
        return func(request, *args, **kwargs)

    return result_auth


def authenticate_class(func):
    """
    Wrapper for class methods which require user's authentication
    """

    @functools.wraps(func)
    def result_auth(cls, request, *args, **kwargs):
        _authenticate_request(request)
        return func(cls, request, *args, **kwargs)

    return result_auth


def require_admin(caller: Caller):
    if not caller.is_admin:
        logger.warning(f"require_admin ::: user_id={caller.user_id} role={caller.role} rejected")
        raise utils_exceptions.AccessDenied(ADMIN_ONLY)


def require_owner_or_admin(caller: Caller, owner_id: str):
    if not caller.is_admin and caller.user_id != owner_id:
        logger.warning(f"require_owner_or_admin ::: user_id={caller.user_id} is not owner={owner_id}")
        raise utils_exceptions.AccessDenied(NOT_OWNER)
