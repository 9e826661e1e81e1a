ROLE_CLIENT = 'CLIENT'
ROLE_ADMIN = 'ADMIN'
ROLES = (ROLE_CLIENT, ROLE_ADMIN)

# Orders
ORDER_STATUS_PENDING = 'pendiente'
ORDER_STATUS_CONFIRMED = 'confirmado'
ORDER_STATUS_PREPARING = 'en_preparacion'
ORDER_STATUS_READY = 'listo'
ORDER_STATUS_ON_THE_WAY = 'en_camino'
ORDER_STATUS_DELIVERED = 'entregado'
ORDER_STATUS_CANCELLED = 'cancelado'
ORDER_STATUSES = (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_CONFIRMED,
    ORDER_STATUS_PREPARING,
    ORDER_STATUS_READY,
    ORDER_STATUS_ON_THE_WAY,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
)
ORDER_TYPE_PICKUP = 'PICKUP'
ORDER_TYPE_DELIVERY = 'DELIVERY'
ORDER_NUMBER_PREFIX = 'ORD'
ORDER_LOCK_SECONDS_DEFAULT = 10
# DynamoDB TransactWriteItems limit
MAX_TRANSACTION_ITEMS = 100

# Reservations
RESERVATION_STATUS_PENDING = 'PENDING'
RESERVATION_STATUS_CONFIRMED = 'CONFIRMED'
RESERVATION_STATUS_CANCELLED = 'CANCELLED'
RESERVATION_STATUSES = (RESERVATION_STATUS_PENDING, RESERVATION_STATUS_CONFIRMED, RESERVATION_STATUS_CANCELLED)
RESERVATION_ACTIVE_STATUSES = (RESERVATION_STATUS_PENDING, RESERVATION_STATUS_CONFIRMED)
RESERVATION_TRANSITIONS = {
    RESERVATION_STATUS_PENDING: (RESERVATION_STATUS_CONFIRMED, RESERVATION_STATUS_CANCELLED),
    RESERVATION_STATUS_CONFIRMED: (RESERVATION_STATUS_CANCELLED,),
    RESERVATION_STATUS_CANCELLED: (),
}
MIN_PARTY_SIZE = 1
MAX_PARTY_SIZE = 20
LAST_SEATING_MINUTES_BEFORE_CLOSE = 60

# Images
MAIN_IMAGE_NAME = 'main.jpg'
THUMB_IMAGE_NAME = 'thumbnail.jpg'
PRODUCT_IMAGES_PATH = 'productos/{product_id}'

# Messages
INTERNAL_SERVER_ERROR = 'Error interno del servidor'
NO_TOKEN_PROVIDED = 'Token de acceso requerido'
INVALID_TOKEN = 'Token inválido o expirado'
ADMIN_ONLY = 'Acceso denegado: se requieren permisos de administrador'
NOT_OWNER = 'No tienes permisos para acceder a este recurso'
USER_INACTIVE = 'Usuario desactivado'
PAST_RESERVATION_CANCEL = 'no se pueden cancelar reservas de fechas pasadas'
