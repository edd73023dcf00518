"""Configuration module for Flask application."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Config:
    """Base configuration class."""

    # Flask
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')
    DEBUG = os.getenv('FLASK_DEBUG', '1') == '1'
    ENV = os.getenv('FLASK_ENV', 'development')

    # Session Configuration (Production-safe defaults)
    SESSION_COOKIE_SECURE = os.getenv('SESSION_COOKIE_SECURE', 'false').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = os.getenv('SESSION_COOKIE_SAMESITE', 'Lax')
    PERMANENT_SESSION_LIFETIME = 86400  # 24 hours

    # CSRF: JSON clients send the token in the X-CSRFToken header
    WTF_CSRF_ENABLED = os.getenv('WTF_CSRF_ENABLED', 'true').lower() == 'true'

    # Database - Priority: DATABASE_URL > DB_* > POSTGRES_*
    DATABASE_URL = os.getenv('DATABASE_URL')

    if not DATABASE_URL:
        DB_HOST = os.getenv('DB_HOST') or os.getenv('POSTGRES_HOST', 'localhost')
        DB_PORT = os.getenv('DB_PORT') or os.getenv('POSTGRES_PORT', '5432')
        DB_NAME = os.getenv('DB_NAME') or os.getenv('POSTGRES_DB', 'vitrine')
        DB_USER = os.getenv('DB_USER') or os.getenv('POSTGRES_USER', 'vitrine')
        DB_PASSWORD = os.getenv('DB_PASSWORD') or os.getenv('POSTGRES_PASSWORD', 'vitrine')

        DATABASE_URL = (
            f"postgresql://{DB_USER}:{DB_PASSWORD}"
            f"@{DB_HOST}:{DB_PORT}/{DB_NAME}"
        )

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = DATABASE_URL
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'

    # Store defaults
    STORE_DEFAULT_NAME = os.getenv('STORE_DEFAULT_NAME', 'Minha Loja')
    CATALOG_DEFAULT_NAME = 'Catálogo'
    CATALOG_RELATED_LIMIT = int(os.getenv('CATALOG_RELATED_LIMIT', '4'))
    CURRENCY = os.getenv('CURRENCY', 'BRL')
    SALES_DEFAULT_RANGE_DAYS = int(os.getenv('SALES_DEFAULT_RANGE_DAYS', '30'))

    # Admin role check (retries against token propagation races)
    ADMIN_CHECK_RETRIES = int(os.getenv('ADMIN_CHECK_RETRIES', '3'))
    ADMIN_CHECK_BACKOFF = float(os.getenv('ADMIN_CHECK_BACKOFF', '0.3'))  # seconds x attempt

    # Email configuration (password reset)
    MAIL_SERVER = os.getenv('SMTP_HOST', 'smtp.gmail.com')
    MAIL_PORT = int(os.getenv('SMTP_PORT', 587))
    MAIL_USE_TLS = True
    MAIL_USE_SSL = False
    MAIL_USERNAME = os.getenv('SMTP_USER') or ''
    MAIL_PASSWORD = os.getenv('SMTP_PASSWORD') or ''
    MAIL_DEFAULT_SENDER = (
        os.getenv('SMTP_FROM')
        or MAIL_USERNAME
        or 'no-reply@localhost'
    )
    MAIL_SUPPRESS_SEND = False

    # Object Storage Configuration (MinIO/S3)
    S3_ENDPOINT = os.getenv('S3_ENDPOINT', 'http://minio:9000')
    S3_ACCESS_KEY = os.getenv('S3_ACCESS_KEY', 'minioadmin')
    S3_SECRET_KEY = os.getenv('S3_SECRET_KEY', 'minioadmin')
    S3_BUCKET = os.getenv('S3_BUCKET', 'product-images')
    S3_REGION = os.getenv('S3_REGION', 'us-east-1')
    S3_PUBLIC_URL = os.getenv('S3_PUBLIC_URL', 'http://localhost:9000')

    # Upload constraints
    MAX_UPLOAD_SIZE = int(os.getenv('MAX_UPLOAD_SIZE', 5 * 1024 * 1024))  # 5MB
    ALLOWED_MIME_TYPES = {
        'image/jpeg',
        'image/png',
        'image/gif',
        'image/webp'
    }
    # Photos sent to the AI gateway are downscaled to this edge length
    AI_IMAGE_MAX_EDGE = int(os.getenv('AI_IMAGE_MAX_EDGE', '1024'))

    # AI gateway (OpenAI-compatible chat completions)
    AI_GATEWAY_URL = os.getenv('AI_GATEWAY_URL', 'https://ai.gateway.lovable.dev/v1/chat/completions')
    AI_API_KEY = os.getenv('AI_API_KEY')
    AI_TEXT_MODEL = os.getenv('AI_TEXT_MODEL', 'google/gemini-2.5-flash')
    AI_IMAGE_MODEL = os.getenv('AI_IMAGE_MODEL', 'google/gemini-2.5-flash-image-preview')
    AI_REQUEST_TIMEOUT = int(os.getenv('AI_REQUEST_TIMEOUT', '60'))

    # Redis Cache Configuration (public catalog reads)
    REDIS_URL = os.getenv('REDIS_URL', 'redis://redis:6379/0')
    CACHE_ENABLED = os.getenv('CACHE_ENABLED', 'true').lower() == 'true'
    CACHE_DEFAULT_TTL = int(os.getenv('CACHE_DEFAULT_TTL', '60'))  # seconds
    CACHE_CATALOG_TTL = int(os.getenv('CACHE_CATALOG_TTL', '60'))
    CACHE_CATEGORIES_TTL = int(os.getenv('CACHE_CATEGORIES_TTL', '300'))
    CACHE_KEY_PREFIX = os.getenv('CACHE_KEY_PREFIX', 'vitrine')


class TestConfig(Config):
    """Configuration used by the test suite."""

    TESTING = True
    DEBUG = False
    ENV = 'testing'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ECHO = False
    WTF_CSRF_ENABLED = False
    CACHE_ENABLED = False
    MAIL_SUPPRESS_SEND = True
    ADMIN_CHECK_BACKOFF = 0
    AI_API_KEY = 'test-key'
