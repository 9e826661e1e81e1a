from typing import Tuple

from boto3.dynamodb.conditions import Attr, Key
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200
from chalicelib.utils import data as utils_data, db as utils_db, app as utils_app, exceptions
from chalicelib.utils.logger import logger


class Category(EntityBase):
    pk = keys_structure.categories_pk
    sk = keys_structure.categories_sk
    record_type = 'category'
    not_found_message = 'Categoría no encontrada'
    deleted_message = 'Categoría eliminada correctamente'

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
    }

    required_mutable_fields_validation = {
        'name': lambda x: isinstance(x, str),
        'is_active': lambda x: isinstance(x, bool)
    }

    optional_fields_validation = {
        'description': lambda x: isinstance(x, str)
    }

    fields_coercion = {
        'name': utils_data.to_text,
        'is_active': utils_data.to_bool,
    }

    removable_fields = ['description']

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)
        values = self._coerce_fields(kwargs)

        self.name: str = values.get('name')
        self.description: str = values.get('description')
        self.is_active: bool = values.get('is_active', True)

    @staticmethod
    @utils_app.log_start_finish
    def endpoint_get_all(request) -> Response:
        categories = sorted([category._to_ui() for category in Category.query_all()],
                            key=lambda item: (item.get('name') or '').lower())
        return Response(status_code=http200, body=categories)

    @utils_app.log_start_finish
    def endpoint_delete(self) -> Response:
        referencing_products = utils_db.query_items_paged(
            Key('partkey').eq(keys_structure.products_pk),
            filter_expression=Attr('category_id').eq(self.id_)
        )
        if referencing_products:
            logger.warning(f"endpoint_delete ::: category_id={self.id_} is used by "
                           f"{len(referencing_products)} products")
            raise exceptions.ConflictException(
                'No se puede eliminar la categoría porque tiene productos asociados')
        return EntityBase.endpoint_delete(self)

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(category_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'name': self.name,
            'description': self.description,
            'is_active': self.is_active,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }
