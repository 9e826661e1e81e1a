from uuid import uuid4

from chalice import Response

from chalicelib.constants.status_codes import http200, http201
from chalicelib.orders import Order, OrderLine
from chalicelib.products import Product
from chalicelib.utils import auth as utils_auth, data as utils_data, app as utils_app, exceptions
from chalicelib.utils.auth import Caller
from chalicelib.utils.logger import logger


def init_line_for_caller(caller: Caller, line_id: str, for_write: bool = False):
    line = OrderLine.init_get_by_id(line_id)
    order = Order.init_for_caller(caller, line.pedido_id, for_write=for_write)
    return line, order


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_get_lines(request) -> Response:
    """
    pedido_id is mandatory for users, admin can list every line
    """
    caller: Caller = request.auth_result
    pedido_id = (request.query_params or {}).get('pedido_id')
    if pedido_id:
        order = Order.init_for_caller(caller, pedido_id)
        lines = order.lines()
    elif caller.is_admin:
        lines = OrderLine.query_all_by_type()
    else:
        raise exceptions.ValidationException('El parámetro pedido_id es obligatorio')
    lines.sort(key=lambda line: line.created_at)
    return Response(status_code=http200, body=[line._to_ui() for line in lines])


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_get_line(request, line_id) -> Response:
    line, _ = init_line_for_caller(request.auth_result, line_id)
    return Response(status_code=http200, body={**line._to_ui(),
                                               'opciones': [option._to_ui() for option in line.options()]})


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_create_line(request) -> Response:
    caller: Caller = request.auth_result
    body = utils_data.parse_raw_body(request)
    utils_data.require_fields(body, 'pedido_id', 'producto_id', 'cantidad')
    order = Order.init_for_caller(caller, str(body['pedido_id']), for_write=True)
    product = Product.init_get_by_id(str(body['producto_id']))
    if 'unit_price' in body and not caller.is_admin:
        raise exceptions.AccessDenied('Solo un administrador puede fijar el precio unitario')
    line = OrderLine(
        id_=str(uuid4()),
        pedido_id=order.id_,
        producto_id=product.id_,
        cantidad=body['cantidad'],
        unit_price=body.get('unit_price', product.precio),
        special_instructions=body.get('special_instructions'),
    )
    line._create_db_record()
    order.recalculate_total()
    return Response(status_code=http201, body=line._to_ui())


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_update_line(request, line_id) -> Response:
    caller: Caller = request.auth_result
    line, order = init_line_for_caller(caller, line_id, for_write=True)
    body = utils_data.parse_raw_body(request)
    if 'unit_price' in body and not caller.is_admin:
        raise exceptions.AccessDenied('Solo un administrador puede modificar el precio unitario')
    line.apply_update({key: value for key, value in body.items()
                       if key in ('cantidad', 'unit_price', 'special_instructions')})
    line._update_db_record()
    order.recalculate_total()
    return Response(status_code=http200, body=line._to_ui())


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_delete_line(request, line_id) -> Response:
    line, order = init_line_for_caller(request.auth_result, line_id, for_write=True)
    for option in line.options():
        option._delete_db_record()
    line._delete_db_record()
    order.recalculate_total()
    logger.info(f"endpoint_delete_line ::: line_id={line.id_} removed from order_id={order.id_}")
    return Response(status_code=http200, body={'message': OrderLine.deleted_message, 'id': line.id_})
