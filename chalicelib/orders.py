import os
import random
import time
from datetime import datetime
from decimal import Decimal
from typing import Tuple, List, Dict
from uuid import uuid4

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError
from chalice import Response

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.carts import Cart
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import (ORDER_STATUSES, ORDER_STATUS_PENDING, ORDER_STATUS_CANCELLED,
                                            ORDER_STATUS_DELIVERED, ORDER_TYPE_PICKUP, ORDER_TYPE_DELIVERY,
                                            ORDER_NUMBER_PREFIX, ORDER_LOCK_SECONDS_DEFAULT)
from chalicelib.constants.status_codes import http200, http201
from chalicelib.utils import auth as utils_auth, data as utils_data, db as utils_db, app as utils_app, exceptions
from chalicelib.utils.auth import Caller
from chalicelib.utils.logger import logger, log_exception

MONEY_ZERO = Decimal('0.00')


def generate_order_number() -> str:
    return f'{ORDER_NUMBER_PREFIX}-{int(time.time() * 1000)}-{random.randint(0, 999):03d}'


def order_lock_seconds() -> int:
    return int(os.environ.get('ORDER_LOCK_SECONDS', ORDER_LOCK_SECONDS_DEFAULT))


class Order(EntityBase):
    pk = keys_structure.orders_pk
    sk = keys_structure.orders_sk
    record_type = 'order'
    not_found_message = 'Pedido no encontrado'
    deleted_message = 'Pedido eliminado correctamente'
    lookup_by_id_index = True

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'user_id': lambda x: isinstance(x, str),
        'order_number': lambda x: isinstance(x, str),
        'fecha': lambda x: isinstance(x, str),
    }

    required_mutable_fields_validation = {
        'total': lambda x: isinstance(x, Decimal) and x >= 0,
        'estado': lambda x: x in ORDER_STATUSES,
        'order_type': lambda x: x in (ORDER_TYPE_PICKUP, ORDER_TYPE_DELIVERY),
    }

    optional_fields_validation = {
        'restaurant_id': lambda x: isinstance(x, str),
        'delivery_address': lambda x: isinstance(x, str),
        'special_instructions': lambda x: isinstance(x, str),
    }

    fields_coercion = {
        'total': utils_data.to_decimal,
        'estado': lambda value, field: utils_data.to_text(value, field).lower(),
        'order_type': lambda value, field: utils_data.to_text(value, field).upper(),
        'delivery_address': lambda value, field: utils_data.to_text(value, field, required=False),
        'special_instructions': lambda value, field: utils_data.to_text(value, field, required=False),
    }

    removable_fields = ['delivery_address', 'special_instructions']

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)
        values = self._coerce_fields(kwargs)

        self.user_id: str = values.get('user_id')
        self.restaurant_id: str = values.get('restaurant_id')
        self.order_number: str = values.get('order_number')
        self.total: Decimal = values.get('total', MONEY_ZERO)
        self.estado: str = values.get('estado', ORDER_STATUS_PENDING)
        self.fecha: str = values.get('fecha') or self.created_at
        self.order_type: str = values.get('order_type', ORDER_TYPE_DELIVERY)
        self.delivery_address: str = values.get('delivery_address')
        self.special_instructions: str = values.get('special_instructions')

    @classmethod
    def init_for_caller(cls, caller: Caller, order_id: str, for_write: bool = False) -> 'Order':
        """
        Loads an order the caller owns (any order for admin).
        Non-admin writes are only allowed while the order is pending
        """
        order = cls.init_get_by_id(order_id)
        utils_auth.require_owner_or_admin(caller, order.user_id)
        if for_write and not caller.is_admin and order.estado != ORDER_STATUS_PENDING:
            raise exceptions.ValidationException('Solo se pueden modificar pedidos pendientes')
        return order

    def lines(self) -> List['OrderLine']:
        return OrderLine.query_all(partkey=OrderLine.pk.format(order_id=self.id_))

    def recalculate_total(self):
        self.apply_update({'total': sum((line.subtotal for line in self.lines()), MONEY_ZERO)})
        self._update_db_record()
        logger.info(f"recalculate_total ::: order_id={self.id_} total={self.total}")

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(user_id=self.user_id), self.sk.format(order_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'user_id': self.user_id,
            'restaurant_id': self.restaurant_id,
            'order_number': self.order_number,
            'total': self.total,
            'estado': self.estado,
            'fecha': self.fecha,
            'order_type': self.order_type,
            'delivery_address': self.delivery_address,
            'special_instructions': self.special_instructions,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }


class OrderLine(EntityBase):
    pk = keys_structure.order_lines_pk
    sk = keys_structure.order_lines_sk
    record_type = 'order_line'
    not_found_message = 'Detalle de pedido no encontrado'
    deleted_message = 'Detalle de pedido eliminado correctamente'
    lookup_by_id_index = True

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'pedido_id': lambda x: isinstance(x, str),
        'producto_id': lambda x: isinstance(x, str),
    }

    required_mutable_fields_validation = {
        'cantidad': lambda x: isinstance(x, int) and x > 0,
        'unit_price': lambda x: isinstance(x, Decimal) and x >= 0,
        'subtotal': lambda x: isinstance(x, Decimal) and x >= 0,
    }

    optional_fields_validation = {
        'special_instructions': lambda x: isinstance(x, str),
    }

    fields_coercion = {
        'pedido_id': lambda value, field: str(value),
        'producto_id': lambda value, field: str(value),
        'cantidad': lambda value, field: utils_data.to_int(value, field, min_value=1),
        'unit_price': utils_data.to_decimal,
        'subtotal': utils_data.to_decimal,
        'special_instructions': lambda value, field: utils_data.to_text(value, field, required=False),
    }

    removable_fields = ['special_instructions']

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)
        values = self._coerce_fields(kwargs)

        self.pedido_id: str = values.get('pedido_id')
        self.producto_id: str = values.get('producto_id')
        self.cantidad: int = values.get('cantidad')
        self.unit_price: Decimal = values.get('unit_price')
        self.subtotal: Decimal = values.get('subtotal')
        self.special_instructions: str = values.get('special_instructions')
        self.refresh_subtotal()

    def refresh_subtotal(self):
        if self.unit_price is not None and self.cantidad is not None:
            self.subtotal = (self.unit_price * self.cantidad).quantize(utils_data.MONEY_QUANT)

    def apply_update(self, payload: Dict) -> None:
        EntityBase.apply_update(self, payload)
        self.refresh_subtotal()
        if 'subtotal' not in self.updated_fields:
            self.updated_fields.append('subtotal')

    def options(self) -> List['OrderLineOption']:
        return OrderLineOption.query_all(partkey=OrderLineOption.pk.format(order_id=self.pedido_id),
                                         sortkey_prefix=f'line_{self.id_}_option_')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(order_id=self.pedido_id), self.sk.format(order_line_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'pedido_id': self.pedido_id,
            'producto_id': self.producto_id,
            'cantidad': self.cantidad,
            'unit_price': self.unit_price,
            'subtotal': self.subtotal,
            'special_instructions': self.special_instructions,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }


class OrderLineOption(EntityBase):
    pk = keys_structure.order_line_options_pk
    sk = keys_structure.order_line_options_sk
    record_type = 'order_line_option'
    not_found_message = 'Opción del detalle de pedido no encontrada'
    deleted_message = 'Opción del detalle de pedido eliminada correctamente'
    lookup_by_id_index = True

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'detalle_pedido_id': lambda x: isinstance(x, str),
        'pedido_id': lambda x: isinstance(x, str),
    }

    required_mutable_fields_validation = {
        'product_option_id': lambda x: isinstance(x, str),
    }

    fields_coercion = {
        'detalle_pedido_id': lambda value, field: str(value),
        'pedido_id': lambda value, field: str(value),
        'product_option_id': lambda value, field: str(value),
    }

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)
        values = self._coerce_fields(kwargs)

        self.detalle_pedido_id: str = values.get('detalle_pedido_id')
        self.pedido_id: str = values.get('pedido_id')
        self.product_option_id: str = values.get('product_option_id')

    def _get_pk_sk(self) -> Tuple[str, str]:
        return (self.pk.format(order_id=self.pedido_id),
                self.sk.format(order_line_id=self.detalle_pedido_id, order_line_option_id=self.id_))

    def _to_dict(self):
        return {
            'id_': self.id_,
            'detalle_pedido_id': self.detalle_pedido_id,
            'pedido_id': self.pedido_id,
            'product_option_id': self.product_option_id,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }


def order_records(order_id: str) -> List[Dict]:
    """
    Lines and line options of one order, they share the order partition
    """
    return utils_db.query_items_paged(Key('partkey').eq(keys_structure.order_lines_pk.format(order_id=order_id)))


def order_with_details(order: Order) -> Dict:
    """
    Nests lines (detalles) and their options into the order
    """
    records = order_records(order.id_)
    options_by_line: Dict[str, List[Dict]] = {}
    for record in records:
        if record.get('record_type') == OrderLineOption.record_type:
            option = OrderLineOption(**record)
            options_by_line.setdefault(option.detalle_pedido_id, []).append(option._to_ui())
    lines = sorted((OrderLine(**record) for record in records if record.get('record_type') == OrderLine.record_type),
                   key=lambda line: line.created_at)
    return {**order._to_ui(),
            'detalles': [{**line._to_ui(), 'opciones': options_by_line.get(line.id_, [])} for line in lines]}


class OrderConverter:
    """
    Turns the caller's cart into an order.
    Order lock + order header + lines + option rows are written with DynamoDB transactions,
    the cart is cleared after the order is committed
    """

    def __init__(self, caller: Caller, request_body: Dict, clear_cart: bool):
        self.caller = caller
        self.request_body = request_body
        self.clear_cart = clear_cart
        self.cart = Cart.init_by_user_id(caller.user_id)

    @classmethod
    @utils_auth.authenticate_class
    def init_request(cls, request, clear_cart: bool = False):
        return cls(request.auth_result, utils_data.parse_raw_body(request), clear_cart)

    def _special_instructions(self) -> str:
        parts = []
        if self.request_body.get('telefono_contacto'):
            parts.append(f"Teléfono: {self.request_body['telefono_contacto']}")
        if self.request_body.get('metodo_pago'):
            parts.append(f"Método de pago: {self.request_body['metodo_pago']}")
        if self.request_body.get('notas'):
            parts.append(f"Notas: {self.request_body['notas']}")
        return ' | '.join(parts)

    def _order_type(self) -> str:
        tipo_entrega = str(self.request_body.get('tipo_entrega', '')).strip().lower()
        return ORDER_TYPE_PICKUP if tipo_entrega == 'pickup' else ORDER_TYPE_DELIVERY

    def _lock_action(self) -> Dict:
        now = Decimal(str(round(time.time(), 3)))
        expires_at = now + order_lock_seconds()
        return utils_db.transact_put(
            {
                'partkey': keys_structure.order_locks_pk,
                'sortkey': keys_structure.order_locks_sk.format(user_id=self.caller.user_id),
                'record_type': 'order_lock',
                'expires_at': expires_at,
                # DynamoDB TTL attribute
                'ttl': int(expires_at) + 60,
            },
            condition=Attr('partkey').not_exists() | Attr('expires_at').lt(now),
            conflict_message='Ya hay un pedido en proceso, espera unos segundos antes de intentarlo de nuevo'
        )

    def _validate_lines(self, lines: List[Dict]):
        unavailable = [line['product'].nombre if line['product'] else line['item'].product_id
                       for line in lines if line['product'] is None or not line['product'].disponible]
        if unavailable:
            raise exceptions.ValidationException(f"Productos no disponibles: {', '.join(unavailable)}")
        missing_options = [entry['product_option_id'] for line in lines for entry in line['selected_options']
                           if entry['option'] is None]
        if missing_options:
            raise exceptions.ValidationException(
                f"Opciones de producto no disponibles: {', '.join(missing_options)}")

    def _clear_cart(self) -> Tuple[bool, int]:
        """
        The order is already committed here, a failure only leaves the cart as it was
        """
        try:
            return True, self.cart.clear()
        except (ClientError, exceptions.NumberOfRetriesExceeded) as error:
            log_exception(error, msg=f'_clear_cart ::: cart of user_id={self.caller.user_id} was not cleared')
            return False, 0

    @utils_app.log_start_finish
    def endpoint_create_order(self) -> Response:
        if not self.cart.items:
            raise exceptions.ValidationException('El carrito está vacío')
        lines = self.cart.snapshot()
        self._validate_lines(lines)

        now = now_iso()
        order_id = str(uuid4())
        order_lines, line_options, line_actions = [], {}, []
        for line in lines:
            order_line = OrderLine(id_=str(uuid4()), pedido_id=order_id, producto_id=line['item'].product_id,
                                   cantidad=line['item'].quantity, unit_price=line['unit_price'], created_at=now)
            order_line._init_db_record()
            order_line._validate_mandatory_fields()
            line_actions.append(utils_db.transact_put(order_line.db_record))
            order_lines.append(order_line)
            line_options[order_line.id_] = []
            # one order line option per cart item option row
            for option_row in line['option_rows']:
                line_option = OrderLineOption(id_=str(uuid4()), detalle_pedido_id=order_line.id_,
                                              pedido_id=order_id,
                                              product_option_id=option_row['product_option_id'], created_at=now)
                line_option._init_db_record()
                line_actions.append(utils_db.transact_put(line_option.db_record))
                line_options[order_line.id_].append(line_option)

        order = Order(
            id_=order_id,
            user_id=self.caller.user_id,
            restaurant_id=str(self.request_body.get('restaurant_id') or lines[0]['product'].restaurant_id),
            order_number=generate_order_number(),
            total=sum((order_line.subtotal for order_line in order_lines), MONEY_ZERO),
            estado=ORDER_STATUS_PENDING,
            fecha=datetime.now().isoformat(),
            order_type=self._order_type(),
            delivery_address=self.request_body.get('direccion_entrega') or self.request_body.get('delivery_address'),
            special_instructions=self._special_instructions(),
            created_at=now,
        )
        order._init_db_record()
        order._validate_mandatory_fields()
        order._validate_optional_fields()

        # lock and header go first, a big order is written in several transactions
        utils_db.transact_write_in_chunks([
            self._lock_action(),
            utils_db.transact_put(order.db_record, condition=Attr('partkey').not_exists()),
            *line_actions
        ])
        transferred_options = sum(len(options) for options in line_options.values())
        logger.info(f"endpoint_create_order ::: order_id={order.id_} order_number={order.order_number} "
                    f"total={order.total} lines={len(order_lines)} options={transferred_options}")

        cart_cleared, deleted_items = self._clear_cart() if self.clear_cart else (False, 0)
        return Response(status_code=http201, body={
            'message': 'Pedido creado exitosamente',
            'pedido': {
                **order._to_ui(),
                'detalles': [
                    {**order_line._to_ui(), 'opciones': [option._to_ui() for option in line_options[order_line.id_]]}
                    for order_line in order_lines
                ]
            },
            'carrito_limpiado': cart_cleared,
            'items_eliminados_carrito': deleted_items,
            'carrito_verificado_vacio': self.cart.is_empty() if self.clear_cart else False,
            'opciones_transferidas': transferred_options
        })


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_get_orders(request) -> Response:
    """
    user gets his orders, admin gets all of them
    """
    caller: Caller = request.auth_result
    estado = (request.query_params or {}).get('estado')
    filter_expression = Attr('estado').eq(estado.lower()) if estado else None
    if caller.is_admin:
        orders = Order.query_all_by_type(filter_expression)
    else:
        orders = Order.query_all(filter_expression, partkey=Order.pk.format(user_id=caller.user_id))
    orders.sort(key=lambda order: order.fecha, reverse=True)
    return Response(status_code=http200, body=[order_with_details(order) for order in orders])


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_get_order(request, order_id) -> Response:
    order = Order.init_for_caller(request.auth_result, order_id)
    return Response(status_code=http200, body=order_with_details(order))


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_cancel_order(request, order_id) -> Response:
    """
    user can cancel only his pending orders, admin any order which is not delivered or cancelled yet
    """
    caller: Caller = request.auth_result
    order = Order.init_for_caller(caller, order_id)
    if caller.is_admin:
        if order.estado in (ORDER_STATUS_CANCELLED, ORDER_STATUS_DELIVERED):
            raise exceptions.ValidationException(f'No se puede cancelar un pedido en estado {order.estado}')
    elif order.estado != ORDER_STATUS_PENDING:
        raise exceptions.ValidationException('Solo se pueden cancelar pedidos pendientes')
    order.apply_update({'estado': ORDER_STATUS_CANCELLED})
    order._update_db_record()
    return Response(status_code=http200, body={'message': 'Pedido cancelado correctamente', 'pedido': order._to_ui()})


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_update_order(request, order_id) -> Response:
    """
    admin operation
    """
    utils_auth.require_admin(request.auth_result)
    order = Order.init_get_by_id(order_id)
    body = utils_data.parse_raw_body(request)
    order.apply_update({key: value for key, value in body.items()
                        if key in ('estado', 'order_type', 'delivery_address', 'special_instructions')})
    order._update_db_record()
    return Response(status_code=http200, body={'message': 'Pedido actualizado correctamente',
                                               'pedido': order._to_ui()})


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_delete_order(request, order_id) -> Response:
    """
    admin operation, lines and their options are deleted too
    """
    utils_auth.require_admin(request.auth_result)
    order = Order.init_get_by_id(order_id)
    for record in order_records(order.id_):
        utils_db.delete_db_record(record['partkey'], record['sortkey'])
    order._delete_db_record()
    return Response(status_code=http200, body={'message': Order.deleted_message, 'id': order.id_})
