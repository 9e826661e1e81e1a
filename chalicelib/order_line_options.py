from typing import List
from uuid import uuid4

from chalice import Response

from chalicelib.carts import normalize_selected_options
from chalicelib.constants.status_codes import http200, http201
from chalicelib.order_lines import init_line_for_caller
from chalicelib.orders import Order, OrderLine, OrderLineOption
from chalicelib.product_options import ProductOption
from chalicelib.utils import auth as utils_auth, data as utils_data, db as utils_db, app as utils_app, exceptions
from chalicelib.utils.auth import Caller


def validate_option_for_line(line: OrderLine, product_option_id: str) -> ProductOption:
    try:
        option = ProductOption.init_get_by_id(product_option_id)
    except exceptions.RecordNotFound:
        raise exceptions.ValidationException(f'La opción de producto {product_option_id} no existe')
    if option.product_id != line.producto_id:
        raise exceptions.ValidationException(
            f'La opción {product_option_id} no pertenece al producto del detalle de pedido')
    return option


def init_line_option_for_caller(caller: Caller, line_option_id: str, for_write: bool = False):
    line_option = OrderLineOption.init_get_by_id(line_option_id)
    Order.init_for_caller(caller, line_option.pedido_id, for_write=for_write)
    return line_option


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_get_line_options(request) -> Response:
    caller: Caller = request.auth_result
    query_params = request.query_params or {}
    detalle_pedido_id, pedido_id = query_params.get('detalle_pedido_id'), query_params.get('pedido_id')
    if detalle_pedido_id:
        line, _ = init_line_for_caller(caller, detalle_pedido_id)
        options: List[OrderLineOption] = line.options()
    elif pedido_id:
        order = Order.init_for_caller(caller, pedido_id)
        options = OrderLineOption.query_all(partkey=OrderLineOption.pk.format(order_id=order.id_))
    elif caller.is_admin:
        options = OrderLineOption.query_all_by_type()
    else:
        raise exceptions.ValidationException('Se requiere detalle_pedido_id o pedido_id')
    return Response(status_code=http200, body=[option._to_ui() for option in options])


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_get_line_option(request, line_option_id) -> Response:
    line_option = init_line_option_for_caller(request.auth_result, line_option_id)
    return Response(status_code=http200, body=line_option._to_ui())


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_create_line_option(request) -> Response:
    body = utils_data.parse_raw_body(request)
    utils_data.require_fields(body, 'detalle_pedido_id', 'product_option_id')
    line, order = init_line_for_caller(request.auth_result, str(body['detalle_pedido_id']), for_write=True)
    option = validate_option_for_line(line, str(body['product_option_id']))
    line_option = OrderLineOption(id_=str(uuid4()), detalle_pedido_id=line.id_, pedido_id=order.id_,
                                  product_option_id=option.id_)
    line_option._create_db_record()
    return Response(status_code=http201, body=line_option._to_ui())


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_create_line_options_bulk(request) -> Response:
    """
    option_ids accepts the same shapes as the cart selected_options
    """
    body = utils_data.parse_raw_body(request)
    utils_data.require_fields(body, 'detalle_pedido_id')
    line, order = init_line_for_caller(request.auth_result, str(body['detalle_pedido_id']), for_write=True)
    option_counts = normalize_selected_options(body.get('option_ids') or body.get('opciones'))
    if not option_counts:
        raise exceptions.ValidationException('Se requiere al menos una opción')
    line_options = []
    for option_id, count in option_counts.items():
        validate_option_for_line(line, option_id)
        line_options.extend(OrderLineOption(id_=str(uuid4()), detalle_pedido_id=line.id_, pedido_id=order.id_,
                                            product_option_id=option_id) for _ in range(count))
    for line_option in line_options:
        line_option._init_db_record()
    utils_db.transact_write_in_chunks([utils_db.transact_put(line_option.db_record) for line_option in line_options])
    return Response(status_code=http201, body={'message': f'{len(line_options)} opciones agregadas al detalle',
                                               'opciones': [line_option._to_ui() for line_option in line_options]})


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_update_line_option(request, line_option_id) -> Response:
    caller: Caller = request.auth_result
    line_option = init_line_option_for_caller(caller, line_option_id, for_write=True)
    body = utils_data.parse_raw_body(request)
    utils_data.require_fields(body, 'product_option_id')
    line = OrderLine.init_get_by_id(line_option.detalle_pedido_id)
    option = validate_option_for_line(line, str(body['product_option_id']))
    line_option.apply_update({'product_option_id': option.id_})
    line_option._update_db_record()
    return Response(status_code=http200, body=line_option._to_ui())


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_delete_line_option(request, line_option_id) -> Response:
    line_option = init_line_option_for_caller(request.auth_result, line_option_id, for_write=True)
    line_option._delete_db_record()
    return Response(status_code=http200, body={'message': OrderLineOption.deleted_message, 'id': line_option.id_})
