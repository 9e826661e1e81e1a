from chalice import Chalice, Response

from chalicelib import (auth, users, restaurants, categories, products, product_options, carts, orders,
                        order_lines, order_line_options, reservations, available_slots)
from chalicelib.constants.status_codes import http200
from chalicelib.utils import app as utils_app, data as utils_data

app = Chalice(app_name='restaurant-ordering-api')

app.api.binary_types.insert(0, 'multipart/form-data')
app.debug = False

API_VERSION = '1.0.0'


@app.route('/health-check', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def health_check():
    return {'health': 'check'}


@app.route('/api', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def api_index():
    return Response(status_code=http200, body={
        'message': 'API de pedidos y reservas de restaurante',
        'version': API_VERSION,
        'auth': 'AWS Cognito',
        'endpoints': {
            'public': [
                'POST /api/auth/login', 'POST /api/auth/register', 'POST /api/auth/refresh-token',
                'GET /api/auth/google', 'GET /api/auth/google/callback',
                'GET /api/restaurants', 'GET /api/categorias', 'GET /api/productos',
                'GET /api/product-options', 'GET /api/available-slots',
            ],
            'protected': [
                '/api/auth/verify', '/api/profile', '/api/users', '/api/cart', '/api/pedidos',
                '/api/detalle-pedidos', '/api/order-item-options', '/api/reservations',
            ],
        },
    })


# AUTH
@app.route('/api/auth/login', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def login():
    return auth.endpoint_login(app.current_request)


@app.route('/api/auth/register', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def register():
    return auth.endpoint_register(app.current_request)


@app.route('/api/auth/verify', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def verify():
    return auth.endpoint_verify(app.current_request)


@app.route('/api/auth/verify-token', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def verify_token():
    return auth.endpoint_verify(app.current_request)


@app.route('/api/auth/refresh-token', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def refresh_token():
    return auth.endpoint_refresh_token(app.current_request)


@app.route('/api/auth/logout', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def logout():
    return auth.endpoint_logout(app.current_request)


@app.route('/api/auth/google', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def google_redirect():
    return auth.endpoint_google_redirect(app.current_request)


@app.route('/api/auth/google/callback', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def google_callback():
    return auth.endpoint_google_callback(app.current_request)


# PROFILE / USERS
@app.route('/api/profile', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_profile():
    return users.UserProfile.init_request_own_profile(app.current_request).endpoint_get_by_id()


@app.route('/api/profile', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_profile():
    return users.UserProfile.init_request_own_profile(app.current_request).\
        endpoint_update_profile(utils_data.parse_raw_body(app.current_request))


@app.route('/api/users', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_users():
    """
    admin operation
    """
    return users.UserProfile.endpoint_get_all(app.current_request)


@app.route('/api/users/{user_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_user(user_id):
    return users.UserProfile.init_request_owner_or_admin(app.current_request, user_id).endpoint_get_by_id()


@app.route('/api/users/{user_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_user(user_id):
    return users.UserProfile.init_request_owner_or_admin(app.current_request, user_id).\
        endpoint_update_profile(utils_data.parse_raw_body(app.current_request))


@app.route('/api/users/{user_id}/role', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def change_user_role(user_id):
    """
    admin operation
    """
    return users.UserProfile.init_request_admin(app.current_request, user_id).\
        endpoint_change_role(utils_data.parse_raw_body(app.current_request).get('role'))


@app.route('/api/users/{user_id}/deactivate', methods=['PATCH'], cors=True)
@utils_app.request_exception_handler
def deactivate_user(user_id):
    """
    admin operation
    """
    return users.UserProfile.init_request_admin(app.current_request, user_id).endpoint_deactivate()


# RESTAURANTS
@app.route('/api/restaurants', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_restaurants():
    return restaurants.Restaurant.endpoint_get_all(app.current_request)


@app.route('/api/restaurants/admin/all', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_restaurants_admin():
    """
    admin operation
    """
    return restaurants.Restaurant.endpoint_get_all_admin(app.current_request)


@app.route('/api/restaurants/{restaurant_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_restaurant_by_id(restaurant_id):
    return restaurants.Restaurant.init_get_by_id(restaurant_id).endpoint_get_by_id()


@app.route('/api/restaurants', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_restaurant():
    """
    admin operation
    """
    return restaurants.Restaurant.init_request_create(app.current_request).endpoint_create()


@app.route('/api/restaurants/{restaurant_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_restaurant(restaurant_id):
    """
    admin operation
    """
    return restaurants.Restaurant.init_request_update(app.current_request, restaurant_id).endpoint_update()


@app.route('/api/restaurants/{restaurant_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def delete_restaurant(restaurant_id):
    """
    admin operation
    """
    return restaurants.Restaurant.init_request_admin(app.current_request, restaurant_id).endpoint_delete()


@app.route('/api/restaurants/{restaurant_id}/toggle-status', methods=['PATCH'], cors=True)
@utils_app.request_exception_handler
def toggle_restaurant_status(restaurant_id):
    """
    admin operation
    """
    return restaurants.Restaurant.init_request_admin(app.current_request, restaurant_id).endpoint_toggle_status()


# CATEGORIES
@app.route('/api/categorias', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_categories():
    return categories.Category.endpoint_get_all(app.current_request)


@app.route('/api/categorias/{category_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_category_by_id(category_id):
    return categories.Category.init_get_by_id(category_id).endpoint_get_by_id()


@app.route('/api/categorias', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_category():
    """
    admin operation
    """
    return categories.Category.init_request_create(app.current_request).endpoint_create()


@app.route('/api/categorias/{category_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_category(category_id):
    """
    admin operation
    """
    return categories.Category.init_request_update(app.current_request, category_id).endpoint_update()


@app.route('/api/categorias/{category_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def delete_category(category_id):
    """
    admin operation
    """
    return categories.Category.init_request_admin(app.current_request, category_id).endpoint_delete()


# PRODUCTS
@app.route('/api/productos', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_products():
    return products.Product.endpoint_get_all(app.current_request)


@app.route('/api/productos/{product_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_product_by_id(product_id):
    return products.Product.init_get_by_id(product_id).endpoint_get_by_id()


@app.route('/api/productos', methods=['POST'], content_types=['application/json', 'multipart/form-data'],
           cors=True)
@utils_app.request_exception_handler
def create_product():
    """
    admin operation, the image can be sent as multipart field `imagen`
    """
    return products.Product.init_request_create(app.current_request).endpoint_create()


@app.route('/api/productos/{product_id}', methods=['PUT'], content_types=['application/json', 'multipart/form-data'],
           cors=True)
@utils_app.request_exception_handler
def update_product(product_id):
    """
    admin operation
    """
    return products.Product.init_request_update(app.current_request, product_id).endpoint_update()


@app.route('/api/productos/{product_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def delete_product(product_id):
    """
    admin operation
    """
    return products.Product.init_request_admin(app.current_request, product_id).endpoint_delete()


# PRODUCT OPTIONS
@app.route('/api/product-options', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_product_options():
    return product_options.ProductOption.endpoint_get_all(app.current_request)


@app.route('/api/product-options/{option_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_product_option_by_id(option_id):
    return product_options.ProductOption.init_get_by_id(option_id).endpoint_get_by_id()


@app.route('/api/product-options', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_product_option():
    """
    admin operation
    """
    return product_options.ProductOption.init_request_create(app.current_request).endpoint_create()


@app.route('/api/product-options/{option_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_product_option(option_id):
    """
    admin operation
    """
    return product_options.ProductOption.init_request_update(app.current_request, option_id).endpoint_update()


@app.route('/api/product-options/{option_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def delete_product_option(option_id):
    """
    admin operation
    """
    return product_options.ProductOption.init_request_admin(app.current_request, option_id).endpoint_delete()


# CART
@app.route('/api/cart', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_cart():
    return carts.Cart.init_endpoint(app.current_request).endpoint_get_cart()


@app.route('/api/cart', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def add_item_to_cart():
    return carts.Cart.init_endpoint(app.current_request).endpoint_add_item_to_cart()


@app.route('/api/cart/{cart_item_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_cart_item(cart_item_id):
    return carts.Cart.init_endpoint(app.current_request).endpoint_update_item(cart_item_id)


@app.route('/api/cart/{cart_item_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def remove_item_from_cart(cart_item_id):
    return carts.Cart.init_endpoint(app.current_request).endpoint_remove_item_from_cart(cart_item_id)


@app.route('/api/cart', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def clear_cart():
    return carts.Cart.init_endpoint(app.current_request).endpoint_clear_cart()


# ORDERS
@app.route('/api/pedidos', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_orders():
    """
    user gets his orders, admin gets every order
    """
    return orders.endpoint_get_orders(app.current_request)


@app.route('/api/pedidos', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_order():
    """
    order is created from user's cart, the cart is kept
    """
    return orders.OrderConverter.init_request(app.current_request).endpoint_create_order()


@app.route('/api/pedidos/limpiar-carrito', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_order_and_clear_cart():
    return orders.OrderConverter.init_request(app.current_request, clear_cart=True).endpoint_create_order()


@app.route('/api/pedidos/{order_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_order_by_id(order_id):
    return orders.endpoint_get_order(app.current_request, order_id)


@app.route('/api/pedidos/{order_id}/cancelar', methods=['PATCH'], cors=True)
@utils_app.request_exception_handler
def cancel_order(order_id):
    return orders.endpoint_cancel_order(app.current_request, order_id)


@app.route('/api/pedidos/{order_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_order(order_id):
    """
    admin operation
    """
    return orders.endpoint_update_order(app.current_request, order_id)


@app.route('/api/pedidos/{order_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def delete_order(order_id):
    """
    admin operation
    """
    return orders.endpoint_delete_order(app.current_request, order_id)


# ORDER LINES
@app.route('/api/detalle-pedidos', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_order_lines():
    return order_lines.endpoint_get_lines(app.current_request)


@app.route('/api/detalle-pedidos/{line_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_order_line(line_id):
    return order_lines.endpoint_get_line(app.current_request, line_id)


@app.route('/api/detalle-pedidos', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_order_line():
    return order_lines.endpoint_create_line(app.current_request)


@app.route('/api/detalle-pedidos/{line_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_order_line(line_id):
    return order_lines.endpoint_update_line(app.current_request, line_id)


@app.route('/api/detalle-pedidos/{line_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def delete_order_line(line_id):
    return order_lines.endpoint_delete_line(app.current_request, line_id)


# ORDER LINE OPTIONS
@app.route('/api/order-item-options', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_order_line_options():
    return order_line_options.endpoint_get_line_options(app.current_request)


@app.route('/api/order-item-options/bulk', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_order_line_options_bulk():
    return order_line_options.endpoint_create_line_options_bulk(app.current_request)


@app.route('/api/order-item-options/{line_option_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_order_line_option(line_option_id):
    return order_line_options.endpoint_get_line_option(app.current_request, line_option_id)


@app.route('/api/order-item-options', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_order_line_option():
    return order_line_options.endpoint_create_line_option(app.current_request)


@app.route('/api/order-item-options/{line_option_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_order_line_option(line_option_id):
    return order_line_options.endpoint_update_line_option(app.current_request, line_option_id)


@app.route('/api/order-item-options/{line_option_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def delete_order_line_option(line_option_id):
    return order_line_options.endpoint_delete_line_option(app.current_request, line_option_id)


# RESERVATIONS
@app.route('/api/reservations', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_reservations():
    """
    user gets his reservations, admin gets every reservation
    """
    return reservations.endpoint_get_reservations(app.current_request)


@app.route('/api/reservations/user/{user_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_user_reservations(user_id):
    return reservations.endpoint_get_user_reservations(app.current_request, user_id)


@app.route('/api/reservations/user/{user_id}/{reservation_id}/cancel', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def cancel_user_reservation(user_id, reservation_id):
    return reservations.endpoint_cancel_reservation(app.current_request, reservation_id, user_id=user_id)


@app.route('/api/reservations/{reservation_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_reservation_by_id(reservation_id):
    return reservations.endpoint_get_reservation(app.current_request, reservation_id)


@app.route('/api/reservations', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_reservation():
    return reservations.endpoint_create_reservation(app.current_request)


@app.route('/api/reservations/{reservation_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_reservation(reservation_id):
    """
    user can only cancel, admin can confirm, cancel or move the reservation
    """
    return reservations.endpoint_update_reservation(app.current_request, reservation_id)


@app.route('/api/reservations/{reservation_id}/cancel', methods=['PUT', 'PATCH'], cors=True)
@utils_app.request_exception_handler
def cancel_reservation(reservation_id):
    return reservations.endpoint_cancel_reservation(app.current_request, reservation_id)


@app.route('/api/reservations/{reservation_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def delete_reservation(reservation_id):
    return reservations.endpoint_delete_reservation(app.current_request, reservation_id)


# AVAILABLE SLOTS
@app.route('/api/available-slots', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_available_slots():
    return available_slots.AvailableSlot.endpoint_get_all(app.current_request)


@app.route('/api/available-slots/{slot_id}', methods=['GET'], cors=True)
@utils_app.request_exception_handler
def get_available_slot_by_id(slot_id):
    return available_slots.AvailableSlot.init_get_by_id(slot_id).endpoint_get_by_id()


@app.route('/api/available-slots', methods=['POST'], cors=True)
@utils_app.request_exception_handler
def create_available_slot():
    """
    admin operation
    """
    return available_slots.AvailableSlot.init_request_create(app.current_request).endpoint_create()


@app.route('/api/available-slots/{slot_id}', methods=['PUT'], cors=True)
@utils_app.request_exception_handler
def update_available_slot(slot_id):
    """
    admin operation
    """
    return available_slots.AvailableSlot.init_request_update(app.current_request, slot_id).endpoint_update()


@app.route('/api/available-slots/{slot_id}', methods=['DELETE'], cors=True)
@utils_app.request_exception_handler
def delete_available_slot(slot_id):
    """
    admin operation
    """
    return available_slots.AvailableSlot.init_request_admin(app.current_request, slot_id).endpoint_delete()
