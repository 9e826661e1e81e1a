from decimal import Decimal
from typing import Tuple, Dict

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib import images
from chalicelib.base_class_entity import EntityBase
from chalicelib.categories import Category
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200, http201
from chalicelib.product_options import ProductOption
from chalicelib.restaurants import Restaurant
from chalicelib.utils import data as utils_data, db as utils_db, app as utils_app, exceptions, s3 as utils_s3
from chalicelib.utils.logger import logger

# form fields sent by the admin UI -> db attributes
FORM_FIELDS_MAPPING = {
    'categoryId': 'category_id',
    'restaurantId': 'restaurant_id',
}


class Product(EntityBase):
    pk = keys_structure.products_pk
    sk = keys_structure.products_sk
    record_type = 'product'
    not_found_message = 'Producto no encontrado'
    deleted_message = 'Producto eliminado correctamente'

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
    }

    required_mutable_fields_validation = {
        'nombre': lambda x: isinstance(x, str),
        'precio': lambda x: isinstance(x, Decimal) and x >= 0,
        'disponible': lambda x: isinstance(x, bool),
        'category_id': lambda x: isinstance(x, str),
        'restaurant_id': lambda x: isinstance(x, str),
    }

    optional_fields_validation = {
        'descripcion': lambda x: isinstance(x, str),
        'imagen': lambda x: isinstance(x, str),
        'imagen_thumbnail': lambda x: isinstance(x, str),
    }

    fields_coercion = {
        'nombre': utils_data.to_text,
        'precio': utils_data.to_decimal,
        'disponible': utils_data.to_bool,
        'category_id': lambda value, field: str(value),
        'restaurant_id': lambda value, field: str(value),
    }

    removable_fields = ['descripcion', 'imagen', 'imagen_thumbnail']

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)
        values = self._coerce_fields(kwargs)

        self.nombre: str = values.get('nombre')
        self.descripcion: str = values.get('descripcion', '')
        self.precio: Decimal = values.get('precio')
        self.imagen: str = values.get('imagen')
        self.imagen_thumbnail: str = values.get('imagen_thumbnail')
        self.disponible: bool = values.get('disponible', True)
        self.category_id: str = values.get('category_id')
        self.restaurant_id: str = values.get('restaurant_id')
        self.image_upload: Dict = values.get('imagen_upload')

    @classmethod
    def parse_request_payload(cls, request) -> Dict:
        """
        Products are sent either as JSON or as multipart/form-data with an optional 'imagen' file
        """
        payload, files = utils_data.parse_request_payload(request)
        for form_field, db_field in FORM_FIELDS_MAPPING.items():
            if form_field in payload:
                payload.setdefault(db_field, payload.pop(form_field))
        if files.get('imagen'):
            payload['imagen_upload'] = files['imagen']
        # the image path is only set by an upload
        payload.pop('imagen', None)
        payload.pop('imagen_thumbnail', None)
        return payload

    def apply_update(self, payload: Dict) -> None:
        EntityBase.apply_update(self, payload)
        if payload.get('imagen_upload'):
            self.image_upload = payload['imagen_upload']
        elif utils_data.to_bool(payload.get('eliminarImagen', False), 'eliminarImagen'):
            logger.info(f"apply_update ::: removing image path of product_id={self.id_}")
            self.imagen, self.imagen_thumbnail = None, None
            self.updated_fields.extend(['imagen', 'imagen_thumbnail'])

    def _upload_image(self):
        if not self.image_upload:
            return
        self.imagen, self.imagen_thumbnail = images.upload_product_image(self.id_, self.image_upload)
        self.updated_fields.extend(['imagen', 'imagen_thumbnail'])
        self.image_upload = None

    def _validate_references(self):
        if 'category_id' in self.updated_fields or not self.updated_fields:
            if self.category_id and utils_db.find_db_item(
                    keys_structure.categories_pk, keys_structure.categories_sk.format(category_id=self.category_id)
            ) is None:
                raise exceptions.ValidationException(f'La categoría {self.category_id} no existe')
        if 'restaurant_id' in self.updated_fields or not self.updated_fields:
            if self.restaurant_id and utils_db.find_db_item(
                    keys_structure.restaurants_pk,
                    keys_structure.restaurants_sk.format(restaurant_id=self.restaurant_id)
            ) is None:
                raise exceptions.ValidationException(f'El restaurante {self.restaurant_id} no existe')

    @staticmethod
    @utils_app.log_start_finish
    def endpoint_get_all(request) -> Response:
        query_params = request.query_params or {}
        filter_expression = None
        for field in ('category_id', 'restaurant_id'):
            if query_params.get(field):
                condition = Attr(field).eq(query_params[field])
                filter_expression = condition if filter_expression is None else filter_expression & condition
        if query_params.get('disponible'):
            condition = Attr('disponible').eq(utils_data.to_bool(query_params['disponible'], 'disponible'))
            filter_expression = condition if filter_expression is None else filter_expression & condition

        products = Product.query_all(filter_expression)
        categories = {category.id_: category for category in Category.query_all()}
        restaurants = {restaurant.id_: restaurant for restaurant in Restaurant.query_all()}
        body = sorted([product._to_ui_enriched(categories, restaurants) for product in products],
                      key=lambda item: (item.get('nombre') or '').lower())
        logger.info(f"endpoint_get_all ::: returning {len(body)} products")
        return Response(status_code=http200, body=body)

    @utils_app.log_start_finish
    def endpoint_get_by_id(self) -> Response:
        return Response(status_code=http200, body=self._to_ui_detail())

    @utils_app.log_start_finish
    def endpoint_create(self) -> Response:
        self._validate_references()
        self._upload_image()
        self._create_db_record()
        return Response(status_code=http201, body=self._to_ui_detail())

    @utils_app.log_start_finish
    def endpoint_update(self, payload=None) -> Response:
        if payload is not None:
            self.apply_update(payload)
        self._validate_references()
        self._upload_image()
        self._update_db_record()
        return Response(status_code=http200, body=self._to_ui_detail())

    @utils_app.log_start_finish
    def endpoint_delete(self) -> Response:
        for option in ProductOption.get_by_product(self.id_):
            option._delete_db_record()
        return EntityBase.endpoint_delete(self)

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk, self.sk.format(product_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'nombre': self.nombre,
            'descripcion': self.descripcion,
            'precio': self.precio,
            'imagen': self.imagen,
            'imagen_thumbnail': self.imagen_thumbnail,
            'disponible': self.disponible,
            'category_id': self.category_id,
            'restaurant_id': self.restaurant_id,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }

    def _to_ui(self) -> Dict:
        item = EntityBase._to_ui(self)
        item['imagen_url'] = utils_s3.image_url(self.imagen) if self.imagen else None
        return item

    def _to_ui_enriched(self, categories: Dict[str, Category], restaurants: Dict[str, Restaurant]) -> Dict:
        item = self._to_ui()
        category = categories.get(self.category_id)
        restaurant = restaurants.get(self.restaurant_id)
        item['category'] = {'id': category.id_, 'name': category.name} if category else None
        item['restaurant'] = {'id': restaurant.id_, 'name': restaurant.name} if restaurant else None
        return item

    def _to_ui_detail(self) -> Dict:
        categories, restaurants = {}, {}
        if self.category_id:
            try:
                categories[self.category_id] = Category.init_get_by_id(self.category_id)
            except exceptions.RecordNotFound:
                logger.warning(f"_to_ui_detail ::: category_id={self.category_id} of product {self.id_} not found")
        if self.restaurant_id:
            try:
                restaurants[self.restaurant_id] = Restaurant.init_get_by_id(self.restaurant_id)
            except exceptions.RecordNotFound:
                logger.warning(f"_to_ui_detail ::: restaurant_id={self.restaurant_id} of product {self.id_} "
                               f"not found")
        item = self._to_ui_enriched(categories, restaurants)
        item['product_options'] = [option._to_ui() for option in ProductOption.get_by_product(self.id_)]
        return item


def get_products_by_ids(product_ids) -> Dict[str, Product]:
    """ Missing products are skipped """
    products = {}
    for product_id in set(product_ids):
        try:
            products[product_id] = Product.init_get_by_id(product_id)
        except exceptions.RecordNotFound:
            logger.warning(f"get_products_by_ids ::: product {product_id} not found")
    return products
