import os
from typing import Dict, List

import pytest
from boto3.dynamodb.conditions import Key
from chalice.local import LocalGateway
from chalice.cli import factory
from moto import mock_aws

from chalicelib.constants import keys_structure
from chalicelib.constants.constants import ROLE_ADMIN, ROLE_CLIENT, INVALID_TOKEN
from chalicelib.utils import db, auth as utils_auth, exceptions
from chalicelib.utils.logger import logger
from test.utils.aws_resources import create_gen_table, create_images_bucket
from test.utils.request_utils import make_request, response_body

PROJECT_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

token_admin = 'admin'
token_user = 'user'
token_other_user = 'other_user'

id_admin = '13303309-d941-486f-b600-3e90929ac50f'
id_user = 'e5b01491-e538-4be3-8d3c-a57db7fc43c1'
id_other_user = '8178f948-cdc2-4e8c-b013-07a956e7e72a'

IDENTITIES = {
    token_admin: {'user_id': id_admin, 'sub': id_admin, 'email': 'admin@test-domain.com',
                  'given_name': 'Ana', 'family_name': 'Admin'},
    token_user: {'user_id': id_user, 'sub': id_user, 'email': 'user@test-domain.com',
                 'given_name': 'Juan', 'family_name': 'Pérez'},
    token_other_user: {'user_id': id_other_user, 'sub': id_other_user, 'email': 'other@test-domain.com',
                       'given_name': 'Lucía', 'family_name': 'Gómez'},
}


def local_gateway() -> LocalGateway:
    config = factory.CLIFactory(
        project_dir=PROJECT_DIR, environ=os.environ).create_config_obj(chalice_stage_name=os.environ.get('stage', 'test'))
    logger.debug(f'local_gateway ::: stage={os.environ.get("stage", "test")}')
    return LocalGateway(config.chalice_app, config)


@pytest.fixture(scope='session')
def chalice_gateway() -> LocalGateway:
    yield local_gateway()


def put_profile(user_id: str, role: str = ROLE_CLIENT, is_active: bool = True, **attributes):
    db.put_db_record({
        'partkey': keys_structure.user_profiles_pk,
        'sortkey': keys_structure.user_profiles_sk.format(user_id=user_id),
        'record_type': 'user_profile',
        'id_': user_id,
        'email': IDENTITIES.get(attributes.pop('token', ''), {}).get('email', f'{user_id}@test-domain.com'),
        'role': role,
        'is_active': is_active,
        'created_at': '2024-01-01T10:00:00',
        'updated_at': '2024-01-01T10:00:00',
        **attributes
    })


@pytest.fixture(autouse=True)
def gen_table(monkeypatch):
    """
    Every test gets an empty moto table with the admin profile already stored
    """
    monkeypatch.delenv('ENDPOINT_URL', raising=False)
    with mock_aws():
        create_gen_table(os.environ['GEN_TABLE_NAME'])
        # built again inside the mock
        monkeypatch.setattr(db, '_DB', None)
        put_profile(id_admin, role=ROLE_ADMIN, token=token_admin, first_name='Ana', last_name='Admin')
        yield db.get_gen_table()


@pytest.fixture
def images_bucket(gen_table):
    yield create_images_bucket(os.environ['IMAGES_BUCKET_NAME'])


def records(partkey: str) -> List[Dict]:
    return db.query_items_paged(Key('partkey').eq(partkey))


def records_of_type(record_type: str) -> List[Dict]:
    return db.query_items_paged(Key('record_type').eq(record_type), index_name=keys_structure.gsi_record_type_index)


@pytest.fixture(autouse=True)
def cognito_identities(monkeypatch) -> Dict:
    def get_identity(token: str) -> Dict:
        if token not in IDENTITIES:
            raise exceptions.NotAuthorizedException(INVALID_TOKEN)
        return dict(IDENTITIES[token])

    monkeypatch.setattr(utils_auth, 'get_identity', get_identity)
    yield IDENTITIES


def create_test_restaurant(chalice_gateway, **overrides) -> Dict:
    restaurant_to_create = {
        'name': 'La Parrilla',
        'address': 'Av. Siempre Viva 742',
        'phone': '+34 600 000 000',
        'email': 'info@laparrilla.test',
        'description': 'Carnes a la brasa',
        'capacity': 40,
        'opening_time': '09:00',
        'closing_time': '22:00',
        **overrides
    }
    response = make_request(chalice_gateway, endpoint='/api/restaurants', method='POST',
                            json_body=restaurant_to_create, token=token_admin)
    assert response['statusCode'] == 201, response['body']
    return response_body(response)


def create_test_category(chalice_gateway, name: str = 'Hamburguesas') -> Dict:
    response = make_request(chalice_gateway, endpoint='/api/categorias', method='POST',
                            json_body={'name': name, 'description': f'Todas las {name.lower()}'}, token=token_admin)
    assert response['statusCode'] == 201, response['body']
    return response_body(response)


def create_test_product(chalice_gateway, category_id: str, restaurant_id: str, **overrides) -> Dict:
    product_to_create = {
        'nombre': 'Burger',
        'descripcion': 'Hamburguesa de la casa',
        'precio': 8.00,
        'category_id': category_id,
        'restaurant_id': restaurant_id,
        **overrides
    }
    response = make_request(chalice_gateway, endpoint='/api/productos', method='POST',
                            json_body=product_to_create, token=token_admin)
    assert response['statusCode'] == 201, response['body']
    return response_body(response)


def create_test_product_option(chalice_gateway, product_id: str, option_type: str = 'extra',
                               option_value: str = 'Queso', extra_price=1.50) -> Dict:
    response = make_request(chalice_gateway, endpoint='/api/product-options', method='POST',
                            json_body={'product_id': product_id, 'option_type': option_type,
                                       'option_value': option_value, 'extra_price': extra_price},
                            token=token_admin)
    assert response['statusCode'] == 201, response['body']
    return response_body(response)


def create_test_menu(chalice_gateway) -> Dict:
    """
    Restaurant, category, Burger at 8.00 with a 1.50 cheese option
    """
    restaurant = create_test_restaurant(chalice_gateway)
    category = create_test_category(chalice_gateway)
    product = create_test_product(chalice_gateway, category['id'], restaurant['id'])
    option = create_test_product_option(chalice_gateway, product['id'])
    return {'restaurant': restaurant, 'category': category, 'product': product, 'option': option}


def create_test_order(chalice_gateway, menu: Dict, token: str = token_user) -> Dict:
    """
    Puts 2 x Burger with cheese into the cart and converts it into an order
    """
    response = make_request(chalice_gateway, endpoint='/api/cart', method='POST', token=token,
                            json_body={'product_id': menu['product']['id'], 'quantity': 2,
                                       'selected_options': [menu['option']['id']]})
    assert response['statusCode'] == 201, response['body']
    response = make_request(chalice_gateway, endpoint='/api/pedidos/limpiar-carrito', method='POST', token=token,
                            json_body={'direccion_entrega': 'Calle Falsa 123', 'telefono_contacto': '600111222'})
    assert response['statusCode'] == 201, response['body']
    return response_body(response)['pedido']
