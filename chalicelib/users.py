import os
from typing import Tuple, Dict, List

from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ROLE_CLIENT, ROLES
from chalicelib.constants.status_codes import http200
from chalicelib.utils import auth as utils_auth, data as utils_data, app as utils_app, exceptions
from chalicelib.utils.boto_clients import cognito_client
from chalicelib.utils.logger import logger

PROFILE_FIELDS = ['first_name', 'last_name', 'phone']


def user_pool_id():
    return os.environ['COGNITO_USER_POOL_ID']


class UserProfile(EntityBase):
    pk = keys_structure.user_profiles_pk
    sk = keys_structure.user_profiles_sk
    record_type = 'user_profile'
    not_found_message = 'Usuario no encontrado'

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'role': lambda x: x in ROLES,
        'is_active': lambda x: isinstance(x, bool),
    }

    optional_fields_validation = {
        'email': lambda x: isinstance(x, str),
        'first_name': lambda x: isinstance(x, str),
        'last_name': lambda x: isinstance(x, str),
        'phone': lambda x: isinstance(x, str),
        'avatar_url': lambda x: isinstance(x, str),
    }

    fields_coercion = {
        'first_name': lambda value, field: utils_data.to_text(value, field, required=False),
        'last_name': lambda value, field: utils_data.to_text(value, field, required=False),
        'phone': lambda value, field: utils_data.to_text(value, field, required=False),
        'is_active': utils_data.to_bool,
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)
        values = self._coerce_fields(kwargs)

        self.email: str = values.get('email', '')
        self.first_name: str = values.get('first_name', '')
        self.last_name: str = values.get('last_name', '')
        self.phone: str = values.get('phone', '')
        self.avatar_url: str = values.get('avatar_url')
        self.role: str = values.get('role') or ROLE_CLIENT
        self.is_active: bool = values.get('is_active', True)
        self.admin_update: bool = False

    @classmethod
    def upsert(cls, user_id: str, email: str, **attributes) -> 'UserProfile':
        """
        Creates a CLIENT profile or refreshes names/avatar of an existing one, role is never changed here
        """
        attributes = {key: value for key, value in attributes.items() if value}
        try:
            profile = cls.init_get_by_id(user_id)
        except exceptions.RecordNotFound:
            profile = cls(id_=user_id, email=email, role=ROLE_CLIENT, is_active=True, **attributes)
            profile._create_db_record()
            logger.info(f"upsert ::: profile created for {user_id=}")
            return profile
        for key, value in attributes.items():
            if key in profile._update_fields_whitelist() and not getattr(profile, key, None):
                setattr(profile, key, value)
                profile.updated_fields.append(key)
        profile._update_db_record()
        return profile

    @classmethod
    @utils_auth.authenticate_class
    def init_request_own_profile(cls, request):
        return cls.init_get_by_id(request.auth_result.user_id)

    @classmethod
    @utils_auth.authenticate_class
    def init_request_owner_or_admin(cls, request, user_id):
        utils_auth.require_owner_or_admin(request.auth_result, user_id)
        return cls.init_get_or_default(user_id)

    @classmethod
    @utils_auth.authenticate_class
    def init_request_admin(cls, request, id_):
        """
        admin operation, users which never logged in have no profile yet
        """
        utils_auth.require_admin(request.auth_result)
        return cls.init_get_or_default(id_)

    @classmethod
    def init_get_or_default(cls, user_id):
        try:
            return cls.init_get_by_id(user_id)
        except exceptions.RecordNotFound:
            cognito_user = find_cognito_user(user_id)
            if cognito_user is None:
                raise
            attributes = utils_auth.identity_attributes(cognito_user)
            return cls(id_=user_id, email=attributes.get('email', ''))

    @staticmethod
    @utils_auth.authenticate
    @utils_app.log_start_finish
    def endpoint_get_all(request) -> Response:
        """
        admin operation, Cognito users merged with their profiles
        """
        utils_auth.require_admin(request.auth_result)
        profiles = {profile.id_: profile for profile in UserProfile.query_all()}
        users: List[Dict] = []
        for cognito_user in list_cognito_users():
            attributes = utils_auth.identity_attributes(cognito_user)
            profile = profiles.pop(attributes['user_id'], None) or \
                UserProfile(id_=attributes['user_id'], email=attributes.get('email', ''))
            users.append({
                **profile._to_ui(),
                'email': attributes.get('email') or profile.email,
                'email_verified': attributes.get('email_verified') == 'true',
                'status': cognito_user.get('UserStatus'),
                'enabled': cognito_user.get('Enabled', True),
            })
        # profiles which exist only in the table
        users.extend(profile._to_ui() for profile in profiles.values())
        logger.info(f"endpoint_get_all ::: returning {len(users)} users")
        return Response(status_code=http200, body=users)

    @utils_app.log_start_finish
    def endpoint_get_by_id(self) -> Response:
        return Response(status_code=http200, body=self._to_ui())

    @utils_app.log_start_finish
    def endpoint_update_profile(self, payload: Dict) -> Response:
        if self.db_record_missing():
            self._create_db_record()
        self.apply_update({key: value for key, value in payload.items() if key in PROFILE_FIELDS})
        self._update_db_record()
        return Response(status_code=http200, body={'message': 'Perfil actualizado correctamente',
                                                   'user': self._to_ui()})

    @utils_app.log_start_finish
    def endpoint_change_role(self, role) -> Response:
        if role not in ROLES:
            raise exceptions.ValidationException(f"Rol inválido, debe ser uno de: {', '.join(ROLES)}")
        if self.db_record_missing():
            self._create_db_record()
        self.admin_update = True
        self.role = role
        self.updated_fields.append('role')
        self._update_db_record()
        return Response(status_code=http200, body={'message': 'Rol actualizado correctamente',
                                                   'user': self._to_ui()})

    @utils_app.log_start_finish
    def endpoint_deactivate(self) -> Response:
        if self.db_record_missing():
            self._create_db_record()
        self.admin_update = True
        self.is_active = False
        self.updated_fields.append('is_active')
        self._update_db_record()
        return Response(status_code=http200, body={'message': 'Usuario desactivado correctamente',
                                                   'user': self._to_ui()})

    def db_record_missing(self) -> bool:
        try:
            self._get_db_item()
        except exceptions.RecordNotFound:
            return True
        return False

    def _update_fields_whitelist(self) -> List:
        fields = [*PROFILE_FIELDS, 'avatar_url']
        if self.admin_update:
            fields.extend(['role', 'is_active'])
        return fields

    def _get_validated_update_dict(self) -> Dict:
        update_dict = EntityBase._get_validated_update_dict(self)
        if 'role' in update_dict and update_dict['role'] not in ROLES:
            raise exceptions.ValidationException('El campo role no es válido')
        return update_dict

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(user_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'phone': self.phone,
            'avatar_url': self.avatar_url,
            'role': self.role,
            'is_active': self.is_active,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }


def list_cognito_users() -> List[Dict]:
    users = []
    paginator = cognito_client.get_paginator('list_users')
    for page in paginator.paginate(UserPoolId=user_pool_id()):
        users.extend(page.get('Users', []))
    return users


def find_cognito_user(user_id: str):
    response = cognito_client.list_users(UserPoolId=user_pool_id(), Filter=f'sub = "{user_id}"', Limit=1)
    users = response.get('Users', [])
    return users[0] if users else None
