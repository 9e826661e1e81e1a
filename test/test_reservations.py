import json
from datetime import datetime

import pytest

from chalicelib import reservations
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import PAST_RESERVATION_CANCEL
from chalicelib.constants.status_codes import http200, http201, http400, http403, http404, http409
from chalicelib.utils import db
from test.utils.request_utils import make_request

from test.utils.fixtures import (chalice_gateway, gen_table, cognito_identities, records, records_of_type,
                                 create_test_restaurant, id_user, id_other_user, token_admin, token_user,
                                 token_other_user)

NOW = datetime(2030, 5, 10, 12, 0)
TOMORROW = '2030-05-11'


@pytest.fixture(autouse=True)
def frozen_now(monkeypatch):
    monkeypatch.setattr(reservations, '_now', lambda: NOW)
    yield NOW


def book(chalice_gateway, restaurant_id, reservation_date=TOMORROW, reservation_time='20:00', party_size=4,
         token=token_user, **extra):
    return make_request(chalice_gateway, endpoint="/api/reservations", method="POST", token=token,
                        json_body={'restaurant_id': restaurant_id, 'reservation_date': reservation_date,
                                   'reservation_time': reservation_time, 'party_size': party_size, **extra})


def slot_sortkeys():
    return sorted(record['sortkey'] for record in records(keys_structure.reservation_slots_pk))


def test_create_reservation(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    response = book(chalice_gateway, restaurant['id'], special_requests='Mesa junto a la ventana')
    response_body = json.loads(response["body"])
    assert response['statusCode'] == http201, response['body']
    assert response_body['message'] == 'Reserva creada exitosamente'
    reservation = response_body['reservation']
    assert reservation['user_id'] == id_user
    assert reservation['status'] == 'PENDING'
    assert reservation['reservation_date'] == TOMORROW
    assert reservation['reservation_time'] == '20:00'
    assert reservation['party_size'] == 4
    assert slot_sortkeys() == [f"{restaurant['id']}_{TOMORROW}_20:00"]


def test_reservation_outside_opening_hours(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    response = book(chalice_gateway, restaurant['id'], reservation_time='21:30')
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == 'El horario de reservas es de 09:00 a 21:00'

    response = book(chalice_gateway, restaurant['id'], reservation_time='08:59')
    assert response['statusCode'] == http400

    # last seating is still accepted
    response = book(chalice_gateway, restaurant['id'], reservation_time='21:00')
    assert response['statusCode'] == http201
    assert slot_sortkeys() == [f"{restaurant['id']}_{TOMORROW}_21:00"]


def test_reservation_restaurant_open_after_midnight(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway, opening_time='20:00', closing_time='02:00')
    assert book(chalice_gateway, restaurant['id'], reservation_time='00:30')['statusCode'] == http201

    response = book(chalice_gateway, restaurant['id'], reservation_time='01:30')
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == 'El horario de reservas es de 20:00 a 01:00'


def test_same_slot_is_rejected(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    assert book(chalice_gateway, restaurant['id'])['statusCode'] == http201

    response = book(chalice_gateway, restaurant['id'], token=token_other_user)
    response_body = json.loads(response["body"])
    assert response['statusCode'] == http409
    assert response_body['error'] == 'conflict'
    assert response_body['message'] == reservations.SLOT_TAKEN_MESSAGE

    # other time or other restaurant is fine
    assert book(chalice_gateway, restaurant['id'], reservation_time='20:30',
                token=token_other_user)['statusCode'] == http201
    other_restaurant = create_test_restaurant(chalice_gateway, name='El Rincón')
    assert book(chalice_gateway, other_restaurant['id'], token=token_other_user)['statusCode'] == http201


def test_slot_record_blocks_booking(chalice_gateway):
    """
    A slot record written by a booking still in flight already takes the slot
    """
    restaurant = create_test_restaurant(chalice_gateway)
    db.put_db_record({'partkey': keys_structure.reservation_slots_pk,
                      'sortkey': f"{restaurant['id']}_{TOMORROW}_20:00",
                      'record_type': 'reservation_slot', 'reservation_id': 'in-flight'})

    response = book(chalice_gateway, restaurant['id'])
    assert response['statusCode'] == http409
    assert records_of_type('reservation') == []


def test_reservation_in_the_past(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    response = book(chalice_gateway, restaurant['id'], reservation_date='2030-05-09')
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == 'No se pueden hacer reservas en fechas pasadas'

    response = book(chalice_gateway, restaurant['id'], reservation_date='2030-05-10', reservation_time='11:00')
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == 'La hora de la reserva debe ser posterior a la hora actual'

    response = book(chalice_gateway, restaurant['id'], reservation_date='2030-05-10', reservation_time='13:00')
    assert response['statusCode'] == http201


def test_reservation_party_size(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    response = book(chalice_gateway, restaurant['id'], party_size=21)
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == 'El número de personas debe estar entre 1 y 20'

    response = book(chalice_gateway, restaurant['id'], party_size=0)
    assert response['statusCode'] == http400

    small_restaurant = create_test_restaurant(chalice_gateway, name='Mini', capacity=4)
    response = book(chalice_gateway, small_restaurant['id'], party_size=6)
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == 'El número de personas excede la capacidad del restaurante (4)'


def test_reservation_validation(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    response = book(chalice_gateway, restaurant['id'], reservation_date='11/05/2030')
    assert response['statusCode'] == http400

    response = book(chalice_gateway, restaurant['id'], reservation_time='8pm')
    assert response['statusCode'] == http400

    response = book(chalice_gateway, 'missing')
    assert response['statusCode'] == http404
    assert json.loads(response["body"])['message'] == 'Restaurante no encontrado'

    make_request(chalice_gateway, endpoint=f"/api/restaurants/{restaurant['id']}/toggle-status", method="PATCH",
                 token=token_admin)
    response = book(chalice_gateway, restaurant['id'])
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == 'El restaurante no está disponible para reservas'


def test_user_can_only_cancel(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    reservation = json.loads(book(chalice_gateway, restaurant['id'])["body"])['reservation']

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}", method="PUT",
                            json_body={'status': 'CONFIRMED'}, token=token_user)
    assert response['statusCode'] == http403
    assert json.loads(response["body"])['message'] == 'Solo puedes cancelar tus reservas'

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}", method="PUT",
                            json_body={'party_size': 2}, token=token_user)
    assert response['statusCode'] == http403

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}", method="PUT",
                            json_body={'status': 'cancelled'}, token=token_user)
    response_body = json.loads(response["body"])
    assert response['statusCode'] == http200
    assert response_body['reservation']['status'] == 'CANCELLED'
    assert slot_sortkeys() == []

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}/cancel",
                            method="PATCH", token=token_user)
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == 'La reserva ya está cancelada y no se puede modificar'

    # the freed slot can be booked again
    assert book(chalice_gateway, restaurant['id'], token=token_other_user)['statusCode'] == http201


def test_cancel_past_reservation(chalice_gateway, monkeypatch):
    restaurant = create_test_restaurant(chalice_gateway)
    reservation = json.loads(book(chalice_gateway, restaurant['id'])["body"])['reservation']

    monkeypatch.setattr(reservations, '_now', lambda: datetime(2030, 5, 12, 9, 0))
    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}/cancel",
                            method="PUT", token=token_user)
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == PAST_RESERVATION_CANCEL

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}", method="PUT",
                            json_body={'status': 'CONFIRMED'}, token=token_admin)
    assert response['statusCode'] == http400
    assert json.loads(response["body"])['message'] == 'No se pueden modificar reservas de fechas pasadas'


def test_admin_confirms_and_moves_reservation(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    reservation = json.loads(book(chalice_gateway, restaurant['id'])["body"])['reservation']
    other = json.loads(book(chalice_gateway, restaurant['id'], reservation_time='19:00',
                            token=token_other_user)["body"])['reservation']

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}", method="PUT",
                            json_body={'status': 'CONFIRMED'}, token=token_admin)
    assert response['statusCode'] == http200
    assert json.loads(response["body"])['reservation']['status'] == 'CONFIRMED'

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}", method="PUT",
                            json_body={'status': 'PENDING'}, token=token_admin)
    assert response['statusCode'] == http400

    # the slot of the other reservation is taken
    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}", method="PUT",
                            json_body={'reservation_time': other['reservation_time']}, token=token_admin)
    assert response['statusCode'] == http409

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}", method="PUT",
                            json_body={'reservation_time': '20:30', 'party_size': 6}, token=token_admin)
    response_body = json.loads(response["body"])
    assert response['statusCode'] == http200, response['body']
    assert response_body['reservation']['reservation_time'] == '20:30'
    assert response_body['reservation']['party_size'] == 6
    assert slot_sortkeys() == sorted([f"{restaurant['id']}_{TOMORROW}_19:00",
                                             f"{restaurant['id']}_{TOMORROW}_20:30"])


def test_get_reservations(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    own = json.loads(book(chalice_gateway, restaurant['id'], reservation_time='20:00')["body"])['reservation']
    early = json.loads(book(chalice_gateway, restaurant['id'], reservation_time='13:00')["body"])['reservation']
    book(chalice_gateway, restaurant['id'], reservation_time='21:00', token=token_other_user)
    make_request(chalice_gateway, endpoint=f"/api/reservations/{own['id']}/cancel", method="PATCH",
                 token=token_user)

    response = make_request(chalice_gateway, endpoint="/api/reservations", method="GET", token=token_user)
    assert response['statusCode'] == http200
    assert [item['id'] for item in json.loads(response["body"])] == [early['id'], own['id']]

    response = make_request(chalice_gateway, endpoint="/api/reservations", method="GET", token=token_admin)
    assert len(json.loads(response["body"])) == 3

    response = make_request(chalice_gateway, endpoint="/api/reservations", method="GET", token=token_admin,
                            query=f"status=pending&date={TOMORROW}&restaurant_id={restaurant['id']}")
    assert [item['reservation_time'] for item in json.loads(response["body"])] == ['13:00', '21:00']

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{own['id']}", method="GET",
                            token=token_other_user)
    assert response['statusCode'] == http403

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{own['id']}", method="GET",
                            token=token_user)
    assert json.loads(response["body"])['status'] == 'CANCELLED'


def test_user_reservations_endpoints(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    reservation = json.loads(book(chalice_gateway, restaurant['id'])["body"])['reservation']

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/user/{id_user}", method="GET",
                            token=token_user)
    assert [item['id'] for item in json.loads(response["body"])] == [reservation['id']]

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/user/{id_user}", method="GET",
                            token=token_other_user)
    assert response['statusCode'] == http403

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/user/{id_other_user}/"
                                                      f"{reservation['id']}/cancel",
                            method="PUT", token=token_admin)
    assert response['statusCode'] == http404

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/user/{id_user}/{reservation['id']}/cancel",
                            method="PUT", token=token_user)
    assert response['statusCode'] == http200
    assert json.loads(response["body"])['reservation']['status'] == 'CANCELLED'


def test_admin_books_for_user(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    response = book(chalice_gateway, restaurant['id'], token=token_admin, user_id=id_user)
    assert response['statusCode'] == http201
    assert json.loads(response["body"])['reservation']['user_id'] == id_user

    # user_id is ignored for non admin callers
    response = book(chalice_gateway, restaurant['id'], reservation_time='19:00', token=token_other_user,
                    user_id=id_user)
    assert json.loads(response["body"])['reservation']['user_id'] == id_other_user


def test_delete_reservation(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    reservation = json.loads(book(chalice_gateway, restaurant['id'])["body"])['reservation']

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}", method="DELETE",
                            token=token_other_user)
    assert response['statusCode'] == http403

    response = make_request(chalice_gateway, endpoint=f"/api/reservations/{reservation['id']}", method="DELETE",
                            token=token_user)
    assert response['statusCode'] == http200
    assert records_of_type('reservation') == []
    assert slot_sortkeys() == []


def test_available_slots_crud(chalice_gateway):
    restaurant = create_test_restaurant(chalice_gateway)
    response = make_request(chalice_gateway, endpoint="/api/available-slots", method="POST", token=token_user,
                            json_body={'restaurant_id': restaurant['id'], 'slot_date': TOMORROW,
                                       'slot_time': '20:00'})
    assert response['statusCode'] == http403

    slots = []
    for slot_time in ('21:00', '20:00'):
        response = make_request(chalice_gateway, endpoint="/api/available-slots", method="POST", token=token_admin,
                                json_body={'restaurant_id': restaurant['id'], 'slot_date': TOMORROW,
                                           'slot_time': slot_time})
        assert response['statusCode'] == http201, response['body']
        slots.append(json.loads(response["body"]))
    assert slots[0]['is_available'] is True

    response = make_request(chalice_gateway, endpoint="/api/available-slots", method="GET",
                            query=f"restaurant_id={restaurant['id']}&slot_date={TOMORROW}")
    assert [slot['slot_time'] for slot in json.loads(response["body"])] == ['20:00', '21:00']

    response = make_request(chalice_gateway, endpoint=f"/api/available-slots/{slots[0]['id']}", method="PUT",
                            json_body={'is_available': 'false'}, token=token_admin)
    assert response['statusCode'] == http200
    assert json.loads(response["body"])['is_available'] is False

    response = make_request(chalice_gateway, endpoint=f"/api/available-slots/{slots[0]['id']}", method="DELETE",
                            token=token_admin)
    assert response['statusCode'] == http200

    response = make_request(chalice_gateway, endpoint=f"/api/available-slots/{slots[0]['id']}", method="GET")
    assert response['statusCode'] == http404
    assert json.loads(response["body"])['message'] == 'Horario disponible no encontrado'


def test_available_slot_for_missing_restaurant(chalice_gateway):
    response = make_request(chalice_gateway, endpoint="/api/available-slots", method="POST", token=token_admin,
                            json_body={'restaurant_id': 'missing', 'slot_date': TOMORROW, 'slot_time': '20:00'})
    assert response['statusCode'] == http404
    assert json.loads(response["body"])['message'] == 'Restaurante no encontrado'
