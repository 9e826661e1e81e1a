from decimal import Decimal
from typing import Tuple, List, Dict

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200
from chalicelib.utils import data as utils_data, db as utils_db, app as utils_app, exceptions
from chalicelib.utils.logger import logger


class ProductOption(EntityBase):
    pk = keys_structure.product_options_pk
    sk = keys_structure.product_options_sk
    record_type = 'product_option'
    not_found_message = 'Opción de producto no encontrada'
    deleted_message = 'Opción de producto eliminada correctamente'

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'product_id': lambda x: isinstance(x, str),
    }

    required_mutable_fields_validation = {
        'option_type': lambda x: isinstance(x, str),
        'option_value': lambda x: isinstance(x, str),
        'extra_price': lambda x: isinstance(x, Decimal) and x >= 0,
        'is_active': lambda x: isinstance(x, bool)
    }

    fields_coercion = {
        'product_id': lambda value, field: str(value),
        'option_type': utils_data.to_text,
        'option_value': utils_data.to_text,
        'extra_price': utils_data.to_decimal,
        'is_active': utils_data.to_bool,
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)
        values = self._coerce_fields(kwargs)

        self.product_id: str = values.get('product_id')
        self.option_type: str = values.get('option_type')
        self.option_value: str = values.get('option_value')
        self.extra_price: Decimal = values.get('extra_price', Decimal('0.00'))
        self.is_active: bool = values.get('is_active', True)

    @classmethod
    def get_by_product(cls, product_id: str, only_active: bool = False) -> List['ProductOption']:
        filter_expression = Attr('product_id').eq(product_id)
        if only_active:
            filter_expression = filter_expression & Attr('is_active').eq(True)
        return cls.query_all(filter_expression)

    @classmethod
    def get_by_ids(cls, option_ids) -> Dict[str, 'ProductOption']:
        """ Missing options are skipped """
        options = {}
        for option_id in set(option_ids):
            try:
                options[option_id] = cls.init_get_by_id(option_id)
            except exceptions.RecordNotFound:
                logger.warning(f"get_by_ids ::: product option {option_id} not found")
        return options

    @staticmethod
    @utils_app.log_start_finish
    def endpoint_get_all(request) -> Response:
        product_id = (request.query_params or {}).get('product_id')
        if product_id:
            options = ProductOption.get_by_product(product_id)
        else:
            options = ProductOption.query_all()
        body = sorted([option._to_ui() for option in options],
                      key=lambda item: (item['option_type'] or '', item['option_value'] or ''))
        return Response(status_code=http200, body=body)

    def _create_db_record(self) -> None:
        if self.product_id and utils_db.find_db_item(
                keys_structure.products_pk, keys_structure.products_sk.format(product_id=self.product_id)) is None:
            raise exceptions.RecordNotFound('Producto no encontrado')
        EntityBase._create_db_record(self)

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(option_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'product_id': self.product_id,
            'option_type': self.option_type,
            'option_value': self.option_value,
            'extra_price': self.extra_price,
            'is_active': self.is_active,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }
