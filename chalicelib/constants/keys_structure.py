user_profiles_pk = 'user_profiles'
user_profiles_sk = '{user_id}'

restaurants_pk = 'restaurants'
restaurants_sk = '{restaurant_id}'

categories_pk = 'categories'
categories_sk = '{category_id}'

products_pk = 'products'
products_sk = '{product_id}'

product_options_pk = 'product_options'
product_options_sk = '{option_id}'

carts_pk = 'cart_{user_id}'
carts_sk = '{cart_item_id}'
cart_item_options_sk = '{cart_item_id}_option_{row_id}'

orders_pk = 'orders_{user_id}'
orders_sk = '{order_id}'

# lines and their options live in the partition of their order
order_lines_pk = 'order_{order_id}'
order_lines_sk = 'line_{order_line_id}'

order_line_options_pk = 'order_{order_id}'
order_line_options_sk = 'line_{order_line_id}_option_{order_line_option_id}'

order_locks_pk = 'order_locks'
order_locks_sk = '{user_id}'

reservations_pk = 'reservations_{user_id}'
reservations_sk = '{reservation_id}'

reservation_slots_pk = 'reservation_slots'
reservation_slots_sk = '{restaurant_id}_{reservation_date}_{reservation_time}'

available_slots_pk = 'available_slots'
available_slots_sk = '{slot_id}'

# GSI, hash key id_: a record whose partition depends on its parent is found by its id alone
gsi_id_index = 'id-index'

# GSI, hash key record_type, range key created_at: every record of one type, for admin listings
gsi_record_type_index = 'record_type-index'
