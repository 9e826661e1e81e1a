from typing import Tuple, List, Dict

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200
from chalicelib.utils import auth as utils_auth, data as utils_data, app as utils_app
from chalicelib.utils.logger import logger


class Restaurant(EntityBase):
    pk = keys_structure.restaurants_pk
    sk = keys_structure.restaurants_sk
    record_type = 'restaurant'
    not_found_message = 'Restaurante no encontrado'
    deleted_message = 'Restaurante eliminado correctamente'

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'created_at': lambda x: isinstance(x, str)
    }

    required_mutable_fields_validation = {
        'name': lambda x: isinstance(x, str),
        'address': lambda x: isinstance(x, str),
        'capacity': lambda x: isinstance(x, int) and x > 0,
        'opening_time': lambda x: isinstance(x, str),
        'closing_time': lambda x: isinstance(x, str),
        'is_active': lambda x: isinstance(x, bool)
    }

    optional_fields_validation = {
        'phone': lambda x: isinstance(x, str),
        'email': lambda x: isinstance(x, str) and '@' in x,
        'description': lambda x: isinstance(x, str)
    }

    fields_coercion = {
        'name': utils_data.to_text,
        'address': utils_data.to_text,
        'capacity': lambda value, field: utils_data.to_int(value, field, min_value=1),
        'opening_time': utils_data.to_clock_time,
        'closing_time': utils_data.to_clock_time,
        'is_active': utils_data.to_bool,
        'phone': lambda value, field: utils_data.to_text(value, field, required=False),
    }

    removable_fields = ['phone', 'email', 'description']

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)
        values = self._coerce_fields(kwargs)

        self.name: str = values.get('name')
        self.address: str = values.get('address')
        self.phone: str = values.get('phone')
        self.email: str = values.get('email')
        self.description: str = values.get('description')
        self.capacity: int = values.get('capacity')
        self.opening_time: str = values.get('opening_time')
        self.closing_time: str = values.get('closing_time')
        self.is_active: bool = values.get('is_active', True)

    @staticmethod
    @utils_app.log_start_finish
    def endpoint_get_all(request) -> Response:
        restaurants: List[Dict] = sorted(
            [restaurant._to_ui() for restaurant in Restaurant.query_all(Attr('is_active').eq(True))],
            key=lambda item: (item.get('name') or '').lower()
        )
        logger.info(f"endpoint_get_all ::: returning restaurants={[rest['id'] for rest in restaurants]}")
        return Response(status_code=http200, body=restaurants)

    @staticmethod
    @utils_auth.authenticate
    @utils_app.log_start_finish
    def endpoint_get_all_admin(request) -> Response:
        """
        admin operation, inactive restaurants are included
        """
        utils_auth.require_admin(request.auth_result)
        restaurants: List[Dict] = sorted([restaurant._to_ui() for restaurant in Restaurant.query_all()],
                                         key=lambda item: (item.get('name') or '').lower())
        return Response(status_code=http200, body=restaurants)

    @utils_app.log_start_finish
    def endpoint_toggle_status(self) -> Response:
        self.apply_update({'is_active': not self.is_active})
        self._update_db_record()
        state = 'activado' if self.is_active else 'desactivado'
        return Response(status_code=http200, body={'message': f'Restaurante {state} correctamente',
                                                   'restaurant': self._to_ui()})

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(restaurant_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'name': self.name,
            'address': self.address,
            'phone': self.phone,
            'email': self.email,
            'description': self.description,
            'capacity': self.capacity,
            'opening_time': self.opening_time,
            'closing_time': self.closing_time,
            'is_active': self.is_active,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }
