from datetime import datetime, date
from typing import Tuple, List, Dict, Optional
from uuid import uuid4

from boto3.dynamodb.conditions import Attr
from chalice import Response

from chalicelib.base_class_entity import EntityBase
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import (RESERVATION_STATUSES, RESERVATION_STATUS_PENDING,
                                            RESERVATION_STATUS_CANCELLED, RESERVATION_ACTIVE_STATUSES,
                                            RESERVATION_TRANSITIONS, MIN_PARTY_SIZE, MAX_PARTY_SIZE,
                                            LAST_SEATING_MINUTES_BEFORE_CLOSE, PAST_RESERVATION_CANCEL)
from chalicelib.constants.status_codes import http200, http201
from chalicelib.restaurants import Restaurant
from chalicelib.utils import auth as utils_auth, data as utils_data, db as utils_db, app as utils_app, exceptions
from chalicelib.utils.auth import Caller
from chalicelib.utils.logger import logger

SLOT_FIELDS = ('restaurant_id', 'reservation_date', 'reservation_time')
ADMIN_FIELDS = (*SLOT_FIELDS, 'party_size', 'special_requests', 'user_id')
SLOT_TAKEN_MESSAGE = 'Ya existe una reserva para ese restaurante en la fecha y hora seleccionadas'


def _now() -> datetime:
    return datetime.now()


class Reservation(EntityBase):
    pk = keys_structure.reservations_pk
    sk = keys_structure.reservations_sk
    record_type = 'reservation'
    not_found_message = 'Reserva no encontrada'
    deleted_message = 'Reserva eliminada correctamente'
    lookup_by_id_index = True

    required_immutable_fields_validation = {
        'id_': lambda x: isinstance(x, str),
        'user_id': lambda x: isinstance(x, str),
    }

    required_mutable_fields_validation = {
        'restaurant_id': lambda x: isinstance(x, str),
        'reservation_date': lambda x: isinstance(x, str),
        'reservation_time': lambda x: isinstance(x, str),
        'party_size': lambda x: isinstance(x, int) and MIN_PARTY_SIZE <= x <= MAX_PARTY_SIZE,
        'status': lambda x: x in RESERVATION_STATUSES,
    }

    optional_fields_validation = {
        'special_requests': lambda x: isinstance(x, str),
    }

    fields_coercion = {
        'restaurant_id': lambda value, field: str(value),
        'reservation_date': lambda value, field: utils_data.to_iso_date(value, field).isoformat(),
        'reservation_time': utils_data.to_clock_time,
        'party_size': utils_data.to_int,
        'status': lambda value, field: utils_data.to_text(value, field).upper(),
        'special_requests': lambda value, field: utils_data.to_text(value, field, required=False),
    }

    removable_fields = ['special_requests']

    def __init__(self, id_, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)
        values = self._coerce_fields(kwargs)

        self.user_id: str = values.get('user_id')
        self.restaurant_id: str = values.get('restaurant_id')
        self.reservation_date: str = values.get('reservation_date')
        self.reservation_time: str = values.get('reservation_time')
        self.party_size: int = values.get('party_size')
        self.status: str = values.get('status') or RESERVATION_STATUS_PENDING
        self.special_requests: str = values.get('special_requests')

    @classmethod
    def init_for_caller(cls, caller: Caller, reservation_id: str) -> 'Reservation':
        reservation = cls.init_get_by_id(reservation_id)
        utils_auth.require_owner_or_admin(caller, reservation.user_id)
        return reservation

    def is_active(self) -> bool:
        return self.status in RESERVATION_ACTIVE_STATUSES

    def is_past(self) -> bool:
        return self.starts_at() <= _now()

    def starts_at(self) -> datetime:
        return datetime.strptime(f'{self.reservation_date} {self.reservation_time}', '%Y-%m-%d %H:%M')

    def slot_key(self) -> Tuple[str, str]:
        return keys_structure.reservation_slots_pk, keys_structure.reservation_slots_sk.format(
            restaurant_id=self.restaurant_id,
            reservation_date=self.reservation_date,
            reservation_time=self.reservation_time
        )

    def slot_put_action(self) -> Dict:
        partkey, sortkey = self.slot_key()
        return utils_db.transact_put(
            {'partkey': partkey, 'sortkey': sortkey, 'record_type': 'reservation_slot', 'reservation_id': self.id_},
            condition=Attr('partkey').not_exists(),
            conflict_message=SLOT_TAKEN_MESSAGE
        )

    def slot_delete_action(self) -> Dict:
        return utils_db.transact_delete(*self.slot_key())

    def _get_pk_sk(self) -> Tuple[str, str]:
        return self.pk.format(user_id=self.user_id), self.sk.format(reservation_id=self.id_)

    def _to_dict(self):
        return {
            'id_': self.id_,
            'user_id': self.user_id,
            'restaurant_id': self.restaurant_id,
            'reservation_date': self.reservation_date,
            'reservation_time': self.reservation_time,
            'party_size': self.party_size,
            'status': self.status,
            'special_requests': self.special_requests,
            'created_at': self.created_at,
            'updated_at': self.updated_at
        }


class ReservationValidator:
    """
    Checks a requested slot against the restaurant: opening hours (last seating one hour before close),
    the current clock, party size and already booked slots
    """

    def __init__(self, restaurant_id: str, reservation_date: str, reservation_time: str, party_size,
                 exclude_id: Optional[str] = None):
        self.restaurant_id = restaurant_id
        self.reservation_date: date = utils_data.to_iso_date(reservation_date, 'reservation_date')
        self.reservation_time: str = utils_data.to_clock_time(reservation_time, 'reservation_time')
        self.party_size = party_size
        self.exclude_id = exclude_id

    def validate(self) -> Restaurant:
        restaurant = Restaurant.init_get_by_id(self.restaurant_id)
        if not restaurant.is_active:
            raise exceptions.ValidationException('El restaurante no está disponible para reservas')
        self._validate_clock()
        self._validate_opening_hours(restaurant)
        self._validate_party_size(restaurant)
        self._validate_slot_is_free()
        logger.info(f"validate ::: slot {self.restaurant_id} {self.reservation_date} {self.reservation_time} is valid")
        return restaurant

    def _validate_clock(self):
        now = _now()
        if self.reservation_date < now.date():
            raise exceptions.ValidationException('No se pueden hacer reservas en fechas pasadas')
        if self.reservation_date == now.date() and \
                utils_data.clock_time_to_minutes(self.reservation_time) <= now.hour * 60 + now.minute:
            raise exceptions.ValidationException('La hora de la reserva debe ser posterior a la hora actual')

    def _validate_opening_hours(self, restaurant: Restaurant):
        if not restaurant.opening_time or not restaurant.closing_time:
            return
        opening = utils_data.clock_time_to_minutes(restaurant.opening_time)
        closing = utils_data.clock_time_to_minutes(restaurant.closing_time)
        if closing <= opening:
            # closes after midnight
            closing += 24 * 60
        last_seating = closing - LAST_SEATING_MINUTES_BEFORE_CLOSE
        requested = utils_data.clock_time_to_minutes(self.reservation_time)
        if requested < opening:
            requested += 24 * 60
        if not opening <= requested <= last_seating:
            raise exceptions.ValidationException(
                f'El horario de reservas es de {restaurant.opening_time} a '
                f'{utils_data.minutes_to_clock_time(last_seating)}')

    def _validate_party_size(self, restaurant: Restaurant):
        party_size = utils_data.to_int(self.party_size, 'party_size')
        if not MIN_PARTY_SIZE <= party_size <= MAX_PARTY_SIZE:
            raise exceptions.ValidationException(
                f'El número de personas debe estar entre {MIN_PARTY_SIZE} y {MAX_PARTY_SIZE}')
        if restaurant.capacity and party_size > restaurant.capacity:
            raise exceptions.ValidationException(
                f'El número de personas excede la capacidad del restaurante ({restaurant.capacity})')

    def _validate_slot_is_free(self):
        slot = utils_db.find_db_item(keys_structure.reservation_slots_pk, keys_structure.reservation_slots_sk.format(
            restaurant_id=self.restaurant_id,
            reservation_date=self.reservation_date.isoformat(),
            reservation_time=self.reservation_time
        ))
        if slot and slot.get('reservation_id') != self.exclude_id:
            raise exceptions.ConflictException(SLOT_TAKEN_MESSAGE)


def _filtered(reservations: List[Reservation], query_params: Dict) -> List[Dict]:
    for field, attribute in (('restaurant_id', 'restaurant_id'), ('status', 'status'), ('date', 'reservation_date')):
        if query_params.get(field):
            expected = query_params[field].upper() if field == 'status' else query_params[field]
            reservations = [reservation for reservation in reservations
                            if getattr(reservation, attribute) == expected]
    reservations.sort(key=lambda reservation: (reservation.reservation_date or '', reservation.reservation_time or ''))
    return [reservation._to_ui() for reservation in reservations]


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_get_reservations(request) -> Response:
    """
    admin gets every reservation, user only his own
    """
    caller: Caller = request.auth_result
    if caller.is_admin:
        reservations = Reservation.query_all_by_type()
    else:
        reservations = Reservation.query_all(partkey=Reservation.pk.format(user_id=caller.user_id))
    return Response(status_code=http200, body=_filtered(reservations, request.query_params or {}))


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_get_user_reservations(request, user_id) -> Response:
    utils_auth.require_owner_or_admin(request.auth_result, user_id)
    reservations = Reservation.query_all(partkey=Reservation.pk.format(user_id=user_id))
    return Response(status_code=http200, body=_filtered(reservations, request.query_params or {}))


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_get_reservation(request, reservation_id) -> Response:
    reservation = Reservation.init_for_caller(request.auth_result, reservation_id)
    return Response(status_code=http200, body=reservation._to_ui())


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_create_reservation(request) -> Response:
    caller: Caller = request.auth_result
    body = utils_data.parse_raw_body(request)
    utils_data.require_fields(body, 'restaurant_id', 'reservation_date', 'reservation_time', 'party_size')
    ReservationValidator(str(body['restaurant_id']), body['reservation_date'], body['reservation_time'],
                         body['party_size']).validate()

    user_id = str(body['user_id']) if caller.is_admin and body.get('user_id') else caller.user_id
    reservation = Reservation(
        id_=str(uuid4()),
        user_id=user_id,
        restaurant_id=body['restaurant_id'],
        reservation_date=body['reservation_date'],
        reservation_time=body['reservation_time'],
        party_size=body['party_size'],
        status=RESERVATION_STATUS_PENDING,
        special_requests=body.get('special_requests'),
    )
    reservation._init_db_record()
    reservation._validate_mandatory_fields()
    reservation._validate_optional_fields()
    utils_db.transact_write([
        utils_db.transact_put(reservation.db_record, condition=Attr('partkey').not_exists()),
        reservation.slot_put_action()
    ])
    logger.info(f"endpoint_create_reservation ::: reservation_id={reservation.id_} created for {user_id=}")
    return Response(status_code=http201, body={'message': 'Reserva creada exitosamente',
                                               'reservation': reservation._to_ui()})


def update_reservation(caller: Caller, reservation: Reservation, payload: Dict) -> Reservation:
    """
    Users may only cancel their reservations, admin may change anything.
    Cancelled and past reservations can't be changed
    """
    payload = {key: value for key, value in payload.items() if key in (*ADMIN_FIELDS, 'status')}
    new_status = str(payload.get('status', reservation.status)).upper()
    if not caller.is_admin:
        if set(payload) - {'status'} or new_status != RESERVATION_STATUS_CANCELLED:
            raise exceptions.AccessDenied('Solo puedes cancelar tus reservas')

    if reservation.status == RESERVATION_STATUS_CANCELLED:
        raise exceptions.ValidationException('La reserva ya está cancelada y no se puede modificar')
    if reservation.is_past():
        if new_status == RESERVATION_STATUS_CANCELLED:
            raise exceptions.ValidationException(PAST_RESERVATION_CANCEL)
        raise exceptions.ValidationException('No se pueden modificar reservas de fechas pasadas')
    if new_status != reservation.status and new_status not in RESERVATION_TRANSITIONS.get(reservation.status, ()):
        raise exceptions.ValidationException(
            f'No se puede cambiar el estado de {reservation.status} a {new_status}')

    old_reservation = Reservation(**reservation._to_dict())
    reservation.apply_update(payload)
    reservation._get_validated_update_dict()

    if any(field in payload for field in (*SLOT_FIELDS, 'party_size')) and reservation.is_active():
        ReservationValidator(reservation.restaurant_id, reservation.reservation_date, reservation.reservation_time,
                             reservation.party_size, exclude_id=reservation.id_).validate()

    reservation.updated_at = datetime.now().isoformat(timespec="seconds")
    reservation._init_db_record()
    actions = [utils_db.transact_put(reservation.db_record)]
    slot_moved = old_reservation.slot_key() != reservation.slot_key()
    if old_reservation.is_active() and (not reservation.is_active() or slot_moved):
        actions.append(old_reservation.slot_delete_action())
    if reservation.is_active() and (not old_reservation.is_active() or slot_moved):
        actions.append(reservation.slot_put_action())
    utils_db.transact_write(actions)
    logger.info(f"update_reservation ::: reservation_id={reservation.id_} updated fields={reservation.updated_fields}")
    return reservation


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_update_reservation(request, reservation_id) -> Response:
    caller: Caller = request.auth_result
    reservation = Reservation.init_for_caller(caller, reservation_id)
    reservation = update_reservation(caller, reservation, utils_data.parse_raw_body(request))
    return Response(status_code=http200, body={'message': 'Reserva actualizada correctamente',
                                               'reservation': reservation._to_ui()})


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_cancel_reservation(request, reservation_id, user_id=None) -> Response:
    caller: Caller = request.auth_result
    reservation = Reservation.init_for_caller(caller, reservation_id)
    if user_id is not None and reservation.user_id != user_id:
        raise exceptions.RecordNotFound(Reservation.not_found_message)
    reservation = update_reservation(caller, reservation, {'status': RESERVATION_STATUS_CANCELLED})
    return Response(status_code=http200, body={'message': 'Reserva cancelada correctamente',
                                               'reservation': reservation._to_ui()})


@utils_auth.authenticate
@utils_app.log_start_finish
def endpoint_delete_reservation(request, reservation_id) -> Response:
    reservation = Reservation.init_for_caller(request.auth_result, reservation_id)
    actions = [utils_db.transact_delete(*reservation._get_pk_sk())]
    if reservation.is_active():
        actions.append(reservation.slot_delete_action())
    utils_db.transact_write(actions)
    return Response(status_code=http200, body={'message': Reservation.deleted_message, 'id': reservation.id_})
