from typing import Tuple

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200
from chalicelib.utils import data as utils_data, db as utils_db, app as utils_app, exceptions


class AvailableSlot(EntityBase):
    """
    Time slots published by the restaurant admin, informative for the booking UI
    """
    pk = keys_structure.available_slots_pk
    sk = keys_structure.available_slots_sk
    record_type = 'available_slot'
    not_found_message = 'Horario disponible no encontrado'
    deleted_message = 'Horario disponible eliminado correctamente'

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
    }

    required_mutable_fields_validation = {
        'restaurant_id': lambda x: isinstance(x, str),
        'slot_date': lambda x: isinstance(x, str),
        'slot_time': lambda x: isinstance(x, str),
        'is_available': lambda x: isinstance(x, bool),
    }

    fields_coercion = {
        'restaurant_id': lambda value, field: str(value),
        'slot_date': lambda value, field: utils_data.to_iso_date(value, field).isoformat(),
        'slot_time': utils_data.to_clock_time,
        'is_available': utils_data.to_bool,
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)
        values = self._coerce_fields(kwargs)

        self.restaurant_id: str = values.get('restaurant_id')
        self.slot_date: str = values.get('slot_date')
        self.slot_time: str = values.get('slot_time')
        self.is_available: bool = values.get('is_available', True)

    @staticmethod
    @utils_app.log_start_finish
    def endpoint_get_all(request) -> Response:
        query_params = request.query_params or {}
        filter_expression = None
        for field in ('restaurant_id', 'slot_date'):
            if query_params.get(field):
                condition = Attr(field).eq(query_params[field])
                filter_expression = condition if filter_expression is None else filter_expression & condition
        slots = sorted(AvailableSlot.query_all(filter_expression),
                       key=lambda slot: (slot.slot_date or '', slot.slot_time or ''))
        return Response(status_code=http200, body=[slot._to_ui() for slot in slots])

    def _create_db_record(self) -> None:
        if self.restaurant_id and utils_db.find_db_item(
                keys_structure.restaurants_pk,
                keys_structure.restaurants_sk.format(restaurant_id=self.restaurant_id)) is None:
            raise exceptions.RecordNotFound('Restaurante no encontrado')
        EntityBase._create_db_record(self)

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(slot_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'restaurant_id': self.restaurant_id,
            'slot_date': self.slot_date,
            'slot_time': self.slot_time,
            'is_available': self.is_available,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }
