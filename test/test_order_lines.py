import json

from chalicelib.constants import keys_structure
from chalicelib.constants.status_codes import http200, http201, http400, http403, http404
from test.utils.request_utils import make_request

from test.utils.fixtures import (chalice_gateway, gen_table, cognito_identities, records, records_of_type,
                                 create_test_menu, create_test_order, create_test_product, create_test_product_option,
                                 token_admin, token_user, token_other_user)


def get_order(chalice_gateway, order_id, token=token_user):
    response = make_request(chalice_gateway, endpoint=f"/api/pedidos/{order_id}", method="GET", token=token)
    assert response['statusCode'] == http200, response['body']
    return json.loads(response["body"])


def add_line(chalice_gateway, order_id, product_id, cantidad=1, token=token_user, **extra):
    return make_request(chalice_gateway, endpoint="/api/detalle-pedidos", method="POST", token=token,
                        json_body={'pedido_id': order_id, 'producto_id': product_id, 'cantidad': cantidad, **extra})


def test_create_line_recalculates_total(chalice_gateway):
    menu = create_test_menu(chalice_gateway)
    order = create_test_order(chalice_gateway, menu)

    response = add_line(chalice_gateway, order['id'], menu['product']['id'])
    response_body = json.loads(response["body"])
    assert response['statusCode'] == http201, response['body']
    assert response_body['pedido_id'] == order['id']
    assert response_body['unit_price'] == 8.0
    assert response_body['subtotal'] == 8.0

    assert get_order(chalice_gateway, order['id'])['total'] == 27.0


def test_create_line_unit_price_admin_only(chalice_gateway):
    menu = create_test_menu(chalice_gateway)
    order = create_test_order(chalice_gateway, menu)

    response = add_line(chalice_gateway, order['id'], menu['product']['id'], unit_price=1)
    assert response['statusCode'] == http403

    response = add_line(chalice_gateway, order['id'], menu['product']['id'], cantidad=2, unit_price=5.5,
                        token=token_admin)
    assert response['statusCode'] == http201
    assert json.loads(response["body"])['subtotal'] == 11.0
    assert get_order(chalice_gateway, order['id'])['total'] == 30.0


def test_create_line_validation(chalice_gateway):
    menu = create_test_menu(chalice_gateway)
    order = create_test_order(chalice_gateway, menu)

    response = add_line(chalice_gateway, order['id'], menu['product']['id'], cantidad=0)
    assert response['statusCode'] == http400

    response = add_line(chalice_gateway, order['id'], 'missing')
    assert response['statusCode'] == http404

    response = make_request(chalice_gateway, endpoint="/api/detalle-pedidos", method="POST", token=token_user,
                            json_body={'pedido_id': order['id']})
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == 'Faltan campos obligatorios: producto_id, cantidad'


def test_update_and_delete_line(chalice_gateway):
    menu = create_test_menu(chalice_gateway)
    order = create_test_order(chalice_gateway, menu)
    line = order['detalles'][0]

    response = make_request(chalice_gateway, endpoint=f"/api/detalle-pedidos/{line['id']}", method="PUT",
                            json_body={'cantidad': 3}, token=token_user)
    response_body = json.loads(response["body"])
    assert response['statusCode'] == http200, response['body']
    assert response_body['cantidad'] == 3
    assert response_body['subtotal'] == 28.5
    assert get_order(chalice_gateway, order['id'])['total'] == 28.5

    response = make_request(chalice_gateway, endpoint=f"/api/detalle-pedidos/{line['id']}", method="PUT",
                            json_body={'unit_price': 1}, token=token_user)
    assert response['statusCode'] == http403

    response = make_request(chalice_gateway, endpoint=f"/api/detalle-pedidos/{line['id']}", method="GET",
                            token=token_user)
    assert len(json.loads(response["body"])['opciones']) == 1

    response = make_request(chalice_gateway, endpoint=f"/api/detalle-pedidos/{line['id']}", method="DELETE",
                            token=token_user)
    assert response['statusCode'] == http200
    # only the order header is left
    assert records(keys_structure.order_lines_pk.format(order_id=order['id'])) == []
    assert len(records_of_type('order')) == 1
    assert get_order(chalice_gateway, order['id'])['total'] == 0.0


def test_get_lines(chalice_gateway):
    menu = create_test_menu(chalice_gateway)
    order = create_test_order(chalice_gateway, menu)

    response = make_request(chalice_gateway, endpoint="/api/detalle-pedidos", method="GET", token=token_user)
    assert response['statusCode'] == http400

    response = make_request(chalice_gateway, endpoint="/api/detalle-pedidos", method="GET", token=token_user,
                            query=f"pedido_id={order['id']}")
    assert response['statusCode'] == http200
    assert [line['id'] for line in json.loads(response["body"])] == [order['detalles'][0]['id']]

    response = make_request(chalice_gateway, endpoint="/api/detalle-pedidos", method="GET", token=token_other_user,
                            query=f"pedido_id={order['id']}")
    assert response['statusCode'] == http403

    response = make_request(chalice_gateway, endpoint="/api/detalle-pedidos", method="GET", token=token_admin)
    assert len(json.loads(response["body"])) == 1


def test_lines_of_confirmed_order_are_read_only_for_user(chalice_gateway):
    menu = create_test_menu(chalice_gateway)
    order = create_test_order(chalice_gateway, menu)
    make_request(chalice_gateway, endpoint=f"/api/pedidos/{order['id']}", method="PUT",
                 json_body={'estado': 'confirmado'}, token=token_admin)

    response = add_line(chalice_gateway, order['id'], menu['product']['id'])
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == 'Solo se pueden modificar pedidos pendientes'

    response = add_line(chalice_gateway, order['id'], menu['product']['id'], token=token_admin)
    assert response['statusCode'] == http201


def test_line_options_bulk(chalice_gateway):
    menu = create_test_menu(chalice_gateway)
    order = create_test_order(chalice_gateway, menu)
    line = order['detalles'][0]

    response = make_request(chalice_gateway, endpoint="/api/order-item-options/bulk", method="POST",
                            token=token_user,
                            json_body={'detalle_pedido_id': line['id'],
                                       'option_ids': [menu['option']['id'], menu['option']['id']]})
    response_body = json.loads(response["body"])
    assert response['statusCode'] == http201, response['body']
    assert len(response_body['opciones']) == 2
    assert len(records_of_type('order_line_option')) == 3

    response = make_request(chalice_gateway, endpoint="/api/order-item-options", method="GET", token=token_user,
                            query=f"detalle_pedido_id={line['id']}")
    assert len(json.loads(response["body"])) == 3

    response = make_request(chalice_gateway, endpoint="/api/order-item-options", method="GET", token=token_user)
    assert response['statusCode'] == http400


def test_line_option_of_other_product(chalice_gateway):
    menu = create_test_menu(chalice_gateway)
    order = create_test_order(chalice_gateway, menu)
    line = order['detalles'][0]
    other_product = create_test_product(chalice_gateway, menu['category']['id'], menu['restaurant']['id'],
                                        nombre='Pizza')
    other_option = create_test_product_option(chalice_gateway, other_product['id'], option_value='Piña')

    response = make_request(chalice_gateway, endpoint="/api/order-item-options", method="POST", token=token_user,
                            json_body={'detalle_pedido_id': line['id'], 'product_option_id': other_option['id']})
    assert response['statusCode'] == http400
    assert 'no pertenece al producto' in json.loads(response["body"])['message']

    response = make_request(chalice_gateway, endpoint="/api/order-item-options/bulk", method="POST",
                            token=token_user,
                            json_body={'detalle_pedido_id': line['id'],
                                       'option_ids': [menu['option']['id'], other_option['id']]})
    assert response['statusCode'] == http400


def test_update_and_delete_line_option(chalice_gateway):
    menu = create_test_menu(chalice_gateway)
    second_option = create_test_product_option(chalice_gateway, menu['product']['id'], option_value='Bacon',
                                               extra_price=2)
    order = create_test_order(chalice_gateway, menu)
    line_option = order['detalles'][0]['opciones'][0]

    response = make_request(chalice_gateway, endpoint=f"/api/order-item-options/{line_option['id']}",
                            method="PUT", json_body={'product_option_id': second_option['id']},
                            token=token_user)
    assert response['statusCode'] == http200, response['body']
    assert json.loads(response["body"])['product_option_id'] == second_option['id']

    response = make_request(chalice_gateway, endpoint=f"/api/order-item-options/{line_option['id']}",
                            method="GET", token=token_other_user)
    assert response['statusCode'] == http403

    response = make_request(chalice_gateway, endpoint=f"/api/order-item-options/{line_option['id']}",
                            method="DELETE", token=token_user)
    assert response['statusCode'] == http200
    assert line_option['id'] not in [record['id_'] for record in records_of_type('order_line_option')]
