from collections import Counter, OrderedDict
from decimal import Decimal
from typing import Tuple, List, Dict, Any
from uuid import uuid4

from boto3.dynamodb.conditions import Key
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200, http201
from chalicelib.product_options import ProductOption
from chalicelib.products import Product, get_products_by_ids
from chalicelib.utils import auth as utils_auth, db as utils_db, app as utils_app, data as utils_data, exceptions
from chalicelib.utils.logger import logger

MONEY_ZERO = Decimal('0.00')


def normalize_selected_options(selected_options: Any) -> Dict[str, int]:
    """
    Accepts the legacy shape (list of option ids, repeated once per unit)
    and the canonical one (list of {option_id, quantity}) and returns {option_id: count}
    """
    if selected_options in (None, '', []):
        return {}
    if not isinstance(selected_options, list):
        raise exceptions.ValidationException('selected_options debe ser una lista')

    counts: Dict[str, int] = OrderedDict()
    for entry in selected_options:
        if isinstance(entry, dict):
            option_id = entry.get('option_id') or entry.get('id')
            quantity = utils_data.to_int(entry.get('quantity', entry.get('qty', 1)), 'selected_options.quantity',
                                         min_value=1)
        elif isinstance(entry, (str, int, Decimal)) and not isinstance(entry, bool):
            option_id, quantity = entry, 1
        else:
            raise exceptions.ValidationException('Formato de selected_options inválido')
        if option_id in (None, ''):
            raise exceptions.ValidationException('Cada opción seleccionada debe tener option_id')
        option_id = str(option_id)
        counts[option_id] = counts.get(option_id, 0) + quantity
    return counts


class CartItem(EntityBase):
    pk = keys_structure.carts_pk
    sk = keys_structure.carts_sk
    record_type = 'cart_item'
    not_found_message = 'Item del carrito no encontrado'

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'user_id': lambda x: isinstance(x, str),
        'product_id': lambda x: isinstance(x, str),
    }

    required_mutable_fields_validation = {
        'quantity': lambda x: isinstance(x, int) and x > 0,
    }

    fields_coercion = {
        'quantity': lambda value, field: utils_data.to_int(value, field, min_value=1),
    }

    def __init__(self, id_, user_id=None, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)
        values = self._coerce_fields(kwargs)

        self.user_id: str = user_id
        self.product_id: str = values.get('product_id')
        self.quantity: int = values.get('quantity')
        # {product_option_id: count}, one db row per option unit
        self.options: Dict[str, int] = {}

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(user_id=self.user_id), self.sk.format(cart_item_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'user_id': self.user_id,
            'product_id': self.product_id,
            'quantity': self.quantity,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }

    def option_records(self) -> List[Dict]:
        records = []
        for option_id, count in self.options.items():
            for _ in range(count):
                row_id = str(uuid4())
                records.append({
                    'partkey': self.pk.format(user_id=self.user_id),
                    'sortkey': keys_structure.cart_item_options_sk.format(cart_item_id=self.id_, row_id=row_id),
                    'record_type': 'cart_item_option',
                    'id_': row_id,
                    'cart_item_id': self.id_,
                    'product_option_id': option_id,
                    'created_at': self.created_at,
                })
        return records


class Cart:

    def __init__(self, user_id: str, request_body: Dict = None):
        self.user_id = user_id
        self.request_body: Dict = request_body or {}
        self.items: List[CartItem] = []
        # cart_item_id -> option rows (partkey, sortkey, product_option_id)
        self.option_rows: Dict[str, List[Dict]] = {}

    @classmethod
    @utils_auth.authenticate_class
    def init_endpoint(cls, request):
        logger.info("init_endpoint ::: started")
        return cls(user_id=request.auth_result.user_id, request_body=utils_data.parse_raw_body(request))

    @classmethod
    def init_by_user_id(cls, user_id):
        cart = cls(user_id=user_id)
        cart._fill_items()
        return cart

    def _partkey(self) -> str:
        return keys_structure.carts_pk.format(user_id=self.user_id)

    def _query_rows(self, sortkey_prefix: str = None) -> List[Dict]:
        key_condition = Key('partkey').eq(self._partkey())
        if sortkey_prefix:
            key_condition = key_condition & Key('sortkey').begins_with(sortkey_prefix)
        return utils_db.query_items_paged(key_condition)

    def _fill_items(self):
        rows = self._query_rows()
        self.items, self.option_rows = [], {}
        for row in rows:
            if row.get('record_type') == 'cart_item_option':
                self.option_rows.setdefault(row['cart_item_id'], []).append(row)
        for row in rows:
            if row.get('record_type') == 'cart_item':
                item = CartItem(**row)
                item.options = dict(Counter(option['product_option_id']
                                            for option in self.option_rows.get(item.id_, [])))
                self.items.append(item)
        self.items.sort(key=lambda cart_item: cart_item.created_at)

    def get_item(self, cart_item_id: str) -> CartItem:
        for item in self.items:
            if item.id_ == cart_item_id:
                return item
        raise exceptions.RecordNotFound(CartItem.not_found_message)

    def all_rows_keys(self) -> List[Tuple[str, str]]:
        keys = [item._get_pk_sk() for item in self.items]
        for rows in self.option_rows.values():
            keys.extend((row['partkey'], row['sortkey']) for row in rows)
        return keys

    def snapshot(self) -> List[Dict]:
        """
        Cart items with their product and option rows, priced per unit:
        unit price = product price + extra_price of every option row
        """
        products = get_products_by_ids([item.product_id for item in self.items])
        options = ProductOption.get_by_ids([option_id for item in self.items for option_id in item.options])
        lines = []
        for item in self.items:
            product: Product = products.get(item.product_id)
            selected = [{'option': options.get(option_id), 'product_option_id': option_id, 'quantity': count}
                        for option_id, count in item.options.items()]
            base_price = product.precio if product else MONEY_ZERO
            options_price = sum((entry['option'].extra_price * entry['quantity'] for entry in selected
                                 if entry['option'] is not None), MONEY_ZERO)
            unit_price = (base_price + options_price).quantize(utils_data.MONEY_QUANT)
            lines.append({
                'item': item,
                'product': product,
                'selected_options': selected,
                'option_rows': self.option_rows.get(item.id_, []),
                'base_price': base_price,
                'options_price': options_price,
                'unit_price': unit_price,
                'line_total': (unit_price * item.quantity).quantize(utils_data.MONEY_QUANT),
            })
        return lines

    @staticmethod
    def line_to_ui(line: Dict) -> Dict:
        item: CartItem = line['item']
        return {
            **item._to_ui(),
            'producto': line['product']._to_ui() if line['product'] else None,
            'opciones_seleccionadas': [
                {
                    **(entry['option']._to_ui() if entry['option'] else {'id': entry['product_option_id']}),
                    'quantity': entry['quantity']
                }
                for entry in line['selected_options']
            ],
            'precio_base': line['base_price'],
            'precio_opciones': line['options_price'],
            'precio_unitario_total': line['unit_price'],
            'precio_total_item': line['line_total'],
        }

    @utils_app.log_start_finish
    def endpoint_get_cart(self) -> Response:
        self._fill_items()
        lines = self.snapshot()
        items = [self.line_to_ui(line) for line in lines]
        summary = {
            'total_items': len(items),
            'cantidad_total': sum(line['item'].quantity for line in lines),
            'total': sum((line['line_total'] for line in lines), MONEY_ZERO),
        }
        return Response(status_code=http200, body={'items': items, 'resumen': summary})

    @utils_app.log_start_finish
    def endpoint_add_item_to_cart(self) -> Response:
        utils_data.require_fields(self.request_body, 'product_id')
        product_id = str(self.request_body['product_id'])
        quantity = utils_data.to_int(self.request_body.get('quantity', 1), 'quantity', min_value=1)
        selected_options = normalize_selected_options(self.request_body.get('selected_options'))

        product = Product.init_get_by_id(product_id)
        if not product.disponible:
            raise exceptions.ValidationException(f'El producto {product.nombre} no está disponible')
        self._validate_options(product, selected_options)

        self._fill_items()
        if not selected_options:
            for item in self.items:
                if item.product_id == product_id and not item.options:
                    item.apply_update({'quantity': item.quantity + quantity})
                    item._update_db_record()
                    logger.info(f"endpoint_add_item_to_cart ::: cart_item_id={item.id_} merged, "
                                f"quantity={item.quantity}")
                    return Response(status_code=http200, body={'message': 'Cantidad actualizada en el carrito',
                                                               'item': item._to_ui(), 'merged': True})

        item = CartItem(id_=str(uuid4()), user_id=self.user_id, product_id=product_id, quantity=quantity)
        item.options = selected_options
        item._init_db_record()
        item._validate_mandatory_fields()
        utils_db.transact_write([utils_db.transact_put(item.db_record)] +
                                [utils_db.transact_put(record) for record in item.option_records()])
        logger.info(f"endpoint_add_item_to_cart ::: cart_item_id={item.id_} created with options={selected_options}")
        return Response(status_code=http201, body={'message': 'Producto agregado al carrito',
                                                   'item': {**item._to_ui(), 'selected_options': [
                                                       {'option_id': option_id, 'quantity': count}
                                                       for option_id, count in selected_options.items()]},
                                                   'merged': False})

    @utils_app.log_start_finish
    def endpoint_update_item(self, cart_item_id: str) -> Response:
        if 'quantity' not in self.request_body:
            raise exceptions.ValidationException('El campo quantity es obligatorio')
        self._fill_items()
        item = self.get_item(cart_item_id)
        item.apply_update({'quantity': self.request_body['quantity']})
        item._update_db_record()
        return Response(status_code=http200, body={'message': 'Item del carrito actualizado',
                                                   'item': item._to_ui()})

    @utils_app.log_start_finish
    def endpoint_remove_item_from_cart(self, cart_item_id: str) -> Response:
        rows = self._query_rows(sortkey_prefix=cart_item_id)
        item_rows = [row for row in rows if row['sortkey'] == cart_item_id]
        if not item_rows:
            raise exceptions.RecordNotFound(CartItem.not_found_message)
        # options first, the item row goes last
        for row in sorted(rows, key=lambda row: row['sortkey'] == cart_item_id):
            utils_db.delete_db_record(row['partkey'], row['sortkey'])
        return Response(status_code=http200, body={'message': 'Producto eliminado del carrito', 'id': cart_item_id})

    @utils_app.log_start_finish
    def endpoint_clear_cart(self) -> Response:
        deleted_items = self.clear()
        return Response(status_code=http200, body={'message': 'Carrito vaciado correctamente',
                                                   'items_eliminados': deleted_items})

    def clear(self) -> int:
        rows = self._query_rows()
        for row in sorted(rows, key=lambda row: row.get('record_type') == 'cart_item'):
            utils_db.delete_db_record(row['partkey'], row['sortkey'])
        deleted_items = len([row for row in rows if row.get('record_type') == 'cart_item'])
        logger.info(f"clear ::: {deleted_items} items removed from cart of user_id={self.user_id}")
        return deleted_items

    def is_empty(self) -> bool:
        return not self._query_rows()

    @staticmethod
    def _validate_options(product: Product, selected_options: Dict[str, int]):
        options = ProductOption.get_by_ids(selected_options.keys())
        for option_id in selected_options:
            option = options.get(option_id)
            if option is None or option.product_id != product.id_:
                raise exceptions.ValidationException(
                    f'La opción {option_id} no pertenece al producto {product.nombre}')
            if not option.is_active:
                raise exceptions.ValidationException(
                    f'La opción {option.option_type}: {option.option_value} no está disponible')
