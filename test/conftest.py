import os

# values the app modules read at import time
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')
os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')
os.environ.setdefault('MAIN_BOTO_REGION', 'us-east-1')
os.environ.setdefault('AWS_REGION', 'us-east-1')
os.environ.setdefault('GEN_TABLE_NAME', 'restaurant-ordering-test')
os.environ.setdefault('COGNITO_USER_POOL_ID', 'us-east-1_test')
os.environ.setdefault('COGNITO_CLIENT_ID', 'test-client-id')
os.environ.setdefault('COGNITO_DOMAIN', 'test.auth.us-east-1.amazoncognito.com')
os.environ.setdefault('FRONTEND_URL', 'http://localhost:5173')
os.environ.setdefault('API_BASE_URL', 'http://localhost:8000')
os.environ.setdefault('IMAGES_BUCKET_NAME', 'restaurant-ordering-images-test')
os.environ.setdefault('IMAGES_BASE_URL', 'https://images.test.local')
os.environ.setdefault('ORDER_LOCK_SECONDS', '0')
os.environ.setdefault('LOG_LEVEL', 'DEBUG')

# moto hooks into botocore when imported, before the app modules create their module level clients
import moto  # noqa: E402,F401
