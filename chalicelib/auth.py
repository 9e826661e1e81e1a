import os
from typing import Dict
from urllib.parse import urlencode

import requests
from botocore.exceptions import ClientError
from chalice import Response
from pycognito import Cognito

from chalicelib.constants.status_codes import http200, http201, http302
from chalicelib.users import UserProfile
from chalicelib.utils import auth as utils_auth, data as utils_data, app as utils_app, exceptions
from chalicelib.utils.boto_clients import cognito_client
from chalicelib.utils.logger import logger, log_exception

INVALID_CREDENTIALS_CODES = ('NotAuthorizedException', 'UserNotFoundException', 'UserNotConfirmedException')


def user_pool_id():
    return os.environ['COGNITO_USER_POOL_ID']


def client_id():
    return os.environ['COGNITO_CLIENT_ID']


def client_secret():
    return os.environ.get('COGNITO_CLIENT_SECRET') or None


def frontend_url():
    return os.environ.get('FRONTEND_URL', 'http://localhost:5173').rstrip('/')


def google_callback_url():
    return f"{os.environ.get('API_BASE_URL', 'http://localhost:8000').rstrip('/')}/api/auth/google/callback"


def cognito_user(**kwargs) -> Cognito:
    return Cognito(user_pool_id(), client_id(), client_secret=client_secret(), **kwargs)


def user_to_ui(user_id: str, email: str, profile: Dict) -> Dict:
    return {
        'id': user_id,
        'email': email,
        'first_name': profile.get('first_name', ''),
        'last_name': profile.get('last_name', ''),
        'phone': profile.get('phone', ''),
        'role': profile.get('role'),
        'is_active': profile.get('is_active', True),
    }


def caller_to_ui(caller: utils_auth.Caller) -> Dict:
    return {
        'id': caller.user_id,
        'email': caller.email,
        'first_name': caller.first_name,
        'last_name': caller.last_name,
        'phone': caller.phone,
        'role': caller.role,
        'is_active': caller.is_active,
    }


@utils_app.log_start_finish
def endpoint_login(request) -> Response:
    body = utils_data.parse_raw_body(request)
    utils_data.require_fields(body, 'email', 'password')
    email = str(body['email']).strip().lower()
    user = cognito_user(username=email)
    try:
        user.authenticate(password=str(body['password']))
    except ClientError as error:
        if error.response.get('Error', {}).get('Code') in INVALID_CREDENTIALS_CODES:
            logger.warning(f"endpoint_login ::: invalid credentials for {email=}")
            raise exceptions.NotAuthorizedException('Credenciales inválidas')
        raise
    identity = utils_auth.get_identity(user.access_token)
    profile = utils_auth.resolve_profile(identity)
    logger.info(f"endpoint_login ::: user_id={identity['user_id']} logged in")
    return Response(status_code=http200, body={
        'message': 'Login exitoso',
        'token': user.access_token,
        'refresh_token': user.refresh_token,
        'user': user_to_ui(identity['user_id'], identity.get('email', email), profile)
    })


@utils_app.log_start_finish
def endpoint_register(request) -> Response:
    """
    Registration never assigns a role, every new user is a CLIENT
    """
    body = utils_data.parse_raw_body(request)
    utils_data.require_fields(body, 'email', 'password', 'firstName')
    email = str(body['email']).strip().lower()
    first_name = utils_data.to_text(body['firstName'], 'firstName')
    last_name = utils_data.to_text(body.get('lastName', ''), 'lastName', required=False)
    phone = utils_data.to_text(body.get('phone', ''), 'phone', required=False)
    user_attributes = [
        {'Name': 'email', 'Value': email},
        {'Name': 'email_verified', 'Value': 'true'},
        {'Name': 'given_name', 'Value': first_name},
    ]
    if last_name:
        user_attributes.append({'Name': 'family_name', 'Value': last_name})

    try:
        created = cognito_client.admin_create_user(
            UserPoolId=user_pool_id(),
            Username=email,
            UserAttributes=user_attributes,
            MessageAction='SUPPRESS'
        )
    except ClientError as error:
        error_code = error.response.get('Error', {}).get('Code')
        if error_code == 'UsernameExistsException':
            raise exceptions.ConflictException('El usuario ya existe')
        if error_code == 'InvalidParameterException':
            raise exceptions.ValidationException(error.response['Error'].get('Message', 'Datos inválidos'))
        raise

    try:
        cognito_client.admin_set_user_password(
            UserPoolId=user_pool_id(), Username=email, Password=str(body['password']), Permanent=True)
    except ClientError as error:
        # user without a usable password can't log in, remove it
        cognito_client.admin_delete_user(UserPoolId=user_pool_id(), Username=email)
        if error.response.get('Error', {}).get('Code') in ('InvalidPasswordException', 'InvalidParameterException'):
            raise exceptions.ValidationException(error.response['Error'].get('Message', 'Contraseña inválida'))
        raise

    user_id = utils_auth.identity_attributes(created['User'])['user_id']
    profile = UserProfile.upsert(user_id, email, first_name=first_name, last_name=last_name, phone=phone)
    logger.info(f"endpoint_register ::: {user_id=} registered")
    return Response(status_code=http201, body={
        'message': 'Usuario registrado exitosamente',
        'user': user_to_ui(user_id, email, profile._to_dict())
    })


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_verify(request) -> Response:
    return Response(status_code=http200, body={'valid': True, 'user': caller_to_ui(request.auth_result)})


@utils_app.log_start_finish
def endpoint_refresh_token(request) -> Response:
    body = utils_data.parse_raw_body(request)
    refresh_token = body.get('refresh_token') or body.get('refreshToken')
    if not refresh_token:
        raise exceptions.ValidationException('Refresh token requerido')
    user = cognito_user(refresh_token=refresh_token, username=body.get('email'))
    try:
        user.renew_access_token()
    except ClientError as error:
        if error.response.get('Error', {}).get('Code') in INVALID_CREDENTIALS_CODES:
            raise exceptions.NotAuthorizedException('Refresh token inválido o expirado')
        raise
    return Response(status_code=http200, body={
        'message': 'Token renovado correctamente',
        'token': user.access_token,
        'refresh_token': user.refresh_token or refresh_token
    })


@utils_app.log_start_finish
def endpoint_logout(request) -> Response:
    header = request.headers.get('authorization') or ''
    token = header[len('Bearer '):] if header.lower().startswith('bearer ') else header
    if token.strip():
        try:
            cognito_client.global_sign_out(AccessToken=token.strip())
        except ClientError as error:
            setattr(error, 'LEVEL', 'warning')
            log_exception(error, 200, 'endpoint_logout ::: global sign out failed, ignoring')
    return Response(status_code=http200, body={'message': 'Sesión cerrada correctamente'})


@utils_app.log_start_finish
def endpoint_google_redirect(request) -> Response:
    auth_url = f"https://{os.environ['COGNITO_DOMAIN']}/oauth2/authorize?" + urlencode({
        'identity_provider': 'Google',
        'response_type': 'code',
        'client_id': client_id(),
        'redirect_uri': google_callback_url(),
        'scope': 'openid email profile',
    })
    return Response(status_code=http302, headers={'Location': auth_url},
                     body={'success': True, 'authUrl': auth_url, 'redirectUrl': google_callback_url()})


def redirect_to_frontend(path: str, params: Dict) -> Response:
    location = f'{frontend_url()}{path}?{urlencode(params)}'
    return Response(status_code=http302, headers={'Location': location}, body='')


def exchange_code_for_tokens(code: str) -> Dict:
    response = requests.post(
        f"https://{os.environ['COGNITO_DOMAIN']}/oauth2/token",
        data={
            'grant_type': 'authorization_code',
            'client_id': client_id(),
            'code': code,
            'redirect_uri': google_callback_url(),
        },
        auth=(client_id(), client_secret()) if client_secret() else None,
        headers={'Content-Type': 'application/x-www-form-urlencoded'},
        timeout=10
    )
    if response.status_code != 200:
        logger.warning(f"exchange_code_for_tokens ::: status={response.status_code} body={response.text}")
        raise exceptions.NotAuthorizedException('token_exchange_failed')
    return response.json()


def split_full_name(identity: Dict) -> Dict:
    first_name, last_name = identity.get('given_name', ''), identity.get('family_name', '')
    if not first_name and identity.get('name'):
        first_name, _, last_name = identity['name'].partition(' ')
    return {'first_name': first_name, 'last_name': last_name}


@utils_app.log_start_finish
def endpoint_google_callback(request) -> Response:
    """
    Any failure sends the user back to the login page with an error code instead of a JSON error
    """
    query_params = request.query_params or {}
    if query_params.get('error'):
        logger.warning(f"endpoint_google_callback ::: provider error={query_params['error']}")
        return redirect_to_frontend('/login', {'error': query_params['error']})

    try:
        if query_params.get('code'):
            tokens = exchange_code_for_tokens(query_params['code'])
        elif query_params.get('access_token'):
            tokens = {'access_token': query_params['access_token'],
                      'refresh_token': query_params.get('refresh_token', '')}
        else:
            return redirect_to_frontend('/login', {'error': 'missing_code'})

        identity = utils_auth.get_identity(tokens['access_token'])
        UserProfile.upsert(identity['user_id'], identity.get('email', ''), avatar_url=identity.get('picture'),
                           **split_full_name(identity))
    except (exceptions.ApiException, ClientError, requests.RequestException, KeyError, ValueError) as error:
        log_exception(error, 302, 'endpoint_google_callback ::: oauth callback failed')
        return redirect_to_frontend('/login', {'error': 'auth_failed'})

    logger.info(f"endpoint_google_callback ::: user_id={identity['user_id']} logged in with Google")
    return redirect_to_frontend('/login/callback', {
        'access_token': tokens['access_token'],
        'refresh_token': tokens.get('refresh_token', ''),
        'user_id': identity['user_id']
    })
