# config/settings.py
# Environment-driven settings for the dispatch API, Celery workers and beat.
import os
import sys
import logging
from decimal import Decimal
from pathlib import Path
import dj_database_url

import sentry_sdk
from sentry_sdk.integrations.django import DjangoIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.celery import CeleryIntegration
from corsheaders.defaults import default_headers

# Configure logging early for startup diagnostics
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# ==============================================================================
# PHASE 1: BASE CONFIGURATION
# ==============================================================================
BASE_DIR = Path(__file__).resolve().parent.parent
DJANGO_ENV = os.getenv("DJANGO_ENV", "production")

# Test runs get local, dependency-free defaults (SQLite, locmem cache)
TESTING = DJANGO_ENV == "test" or "pytest" in sys.modules or sys.argv[1:2] == ["test"]

logger.info(f"Django initializing in {DJANGO_ENV} environment (testing={TESTING})")

# ==============================================================================
# PHASE 2: SECURITY - STRICT PRODUCTION DEFAULTS
# ==============================================================================

# DEBUG - MUST DEFAULT TO FALSE
DEBUG = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")
RELAXED = DEBUG or TESTING

if DEBUG:
    logger.warning("DEBUG mode is enabled - NEVER use in production")

# SECRET_KEY - REQUIRED IN PRODUCTION
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY")
if not SECRET_KEY:
    if RELAXED:
        logger.warning("DJANGO_SECRET_KEY not set, using insecure dev key")
        SECRET_KEY = "dev-insecure-key-change-in-production"
    else:
        logger.critical("DJANGO_SECRET_KEY environment variable is REQUIRED in production")
        sys.exit(1)

# ALLOWED_HOSTS - STRICT FOR PRODUCTION
ALLOWED_HOSTS_STR = os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver" if RELAXED else "")
if not ALLOWED_HOSTS_STR and not RELAXED:
    logger.critical("ALLOWED_HOSTS environment variable is REQUIRED in production")
    sys.exit(1)
ALLOWED_HOSTS = [h.strip() for h in ALLOWED_HOSTS_STR.split(",") if h.strip()]

# HTTPS / PROXY / SSL CONFIGURATION
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
USE_X_FORWARDED_HOST = True
USE_X_FORWARDED_FOR = True

SESSION_COOKIE_HTTPONLY = True
CSRF_COOKIE_HTTPONLY = True
SESSION_COOKIE_SAMESITE = "Lax"
CSRF_COOKIE_SAMESITE = "Lax"

if not RELAXED:
    SECURE_SSL_REDIRECT = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_HSTS_SECONDS = 31536000
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True
else:
    SECURE_SSL_REDIRECT = False
    SESSION_COOKIE_SECURE = False
    CSRF_COOKIE_SECURE = False

# ==============================================================================
# PHASE 3: INSTALLED APPS
# ==============================================================================
INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",
    "rest_framework_simplejwt",
    "django_filters",
    "corsheaders",
    "drf_spectacular",
    "django_prometheus",
    "django_celery_beat",
    "import_export",

    # Local apps
    "apps.accounts",
    "apps.stores",
    "apps.drivers",
    "apps.orders",
    "apps.delivery",
    "apps.audit",
    "apps.core",
]

# ==============================================================================
# PHASE 4: MIDDLEWARE
# ==============================================================================
MIDDLEWARE = [
    "django_prometheus.middleware.PrometheusBeforeMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "apps.core.middleware.CorrelationIDMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "django_prometheus.middleware.PrometheusAfterMiddleware",
]

# WhiteNoise for efficient static file serving (admin assets) in production
if not RELAXED:
    MIDDLEWARE.insert(1, "whitenoise.middleware.WhiteNoiseMiddleware")

# ==============================================================================
# PHASE 5: URL / WSGI / ASGI
# ==============================================================================
ROOT_URLCONF = "config.urls"
WSGI_APPLICATION = "config.wsgi.application"
ASGI_APPLICATION = "config.asgi.application"

# ==============================================================================
# PHASE 6: DATABASE CONFIGURATION
# Support both DATABASE_URL and POSTGRES_* environment variables
# ==============================================================================
database_url = os.getenv("DATABASE_URL")

if not database_url:
    postgres_user = os.getenv("POSTGRES_USER")
    postgres_password = os.getenv("POSTGRES_PASSWORD")
    postgres_host = os.getenv("POSTGRES_HOST", "localhost")
    postgres_port = os.getenv("POSTGRES_PORT", "5432")
    postgres_db = os.getenv("POSTGRES_DB")

    if postgres_user and postgres_password and postgres_db:
        database_url = (
            f"postgres://{postgres_user}:{postgres_password}"
            f"@{postgres_host}:{postgres_port}/{postgres_db}"
        )
        logger.info("Built DATABASE_URL from POSTGRES_* env vars")
    elif not RELAXED:
        logger.critical("DATABASE_URL or POSTGRES_* env vars are REQUIRED in production")
        sys.exit(1)
    else:
        database_url = f"sqlite:///{BASE_DIR / 'db.sqlite3'}"
        logger.warning("Using local SQLite database")

DATABASES = {
    "default": dj_database_url.parse(database_url, conn_max_age=0 if TESTING else 600)
}

# ==============================================================================
# PHASE 7: TEMPLATES
# ==============================================================================
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

# ==============================================================================
# PHASE 8: REDIS / CACHE / CELERY
# Cache backs DRF throttling, token revocation and the beat heartbeat
# ==============================================================================
REDIS_URL = None if TESTING else os.getenv("REDIS_URL", "redis://localhost:6379/0" if DEBUG else None)

if not REDIS_URL and not RELAXED:
    logger.critical("REDIS_URL environment variable is REQUIRED in production")
    sys.exit(1)

if REDIS_URL:
    CELERY_BROKER_URL = REDIS_URL
    CELERY_RESULT_BACKEND = REDIS_URL
    CELERY_BROKER_CONNECTION_RETRY_ON_STARTUP = True
    CELERY_BROKER_HEARTBEAT = 60
    CELERY_TASK_ACKS_LATE = True
    CELERY_WORKER_PREFETCH_MULTIPLIER = 1

    CACHES = {
        "default": {
            "BACKEND": "django_redis.cache.RedisCache",
            "LOCATION": REDIS_URL,
            "OPTIONS": {
                "CLIENT_CLASS": "django_redis.client.DefaultClient",
                "SOCKET_CONNECT_TIMEOUT": 5,
                "SOCKET_TIMEOUT": 5,
                "RETRY_ON_TIMEOUT": True,
            }
        }
    }
else:
    logger.warning("Redis not configured, using in-memory cache (NOT for production)")
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "dispatch-local",
        }
    }

    # Tasks run inline when there is no broker
    CELERY_BROKER_URL = "memory://"
    CELERY_RESULT_BACKEND = None
    CELERY_TASK_ALWAYS_EAGER = True

CELERY_BEAT_SCHEDULER = "django_celery_beat.schedulers:DatabaseScheduler"

# ==============================================================================
# PHASE 9: CORS CONFIGURATION
# ==============================================================================
if RELAXED:
    CORS_ALLOW_ALL_ORIGINS = True
else:
    CORS_ALLOW_ALL_ORIGINS = False
    cors_origins_str = os.getenv("CORS_ALLOWED_ORIGINS", "")
    if not cors_origins_str:
        logger.critical("CORS_ALLOWED_ORIGINS environment variable is REQUIRED in production")
        sys.exit(1)
    CORS_ALLOWED_ORIGINS = [o.strip() for o in cors_origins_str.split(",") if o.strip()]
    logger.info(f"CORS configured for {len(CORS_ALLOWED_ORIGINS)} origins")

CORS_ALLOW_CREDENTIALS = True
CORS_EXPOSE_HEADERS = ["Content-Type", "X-CSRFToken", "X-Request-ID"]
CORS_ALLOW_HEADERS = list(default_headers) + [
    "x-request-id",
]

# ==============================================================================
# PHASE 10: LOGGING CONFIGURATION
# Stdout/stderr for container environments. LOG_FORMAT=json for log shippers.
# ==============================================================================
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "correlation_id": {
            "()": "apps.utils.logging.CorrelationIdFilter",
        },
    },
    "formatters": {
        "simple": {
            "format": "{levelname} {asctime} [{correlation_id}] {name} {message}",
            "style": "{",
        },
        "json": {
            "()": "apps.utils.logging.GDPRJsonFormatter",
        },
    },
    "handlers": {
        "console": {
            "level": "DEBUG",
            "class": "logging.StreamHandler",
            "formatter": "json" if LOG_FORMAT == "json" else "simple",
            "filters": ["correlation_id"],
        },
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "django.db.backends": {
            "handlers": ["console"],
            "level": "WARNING",
            "propagate": False,
        },
        "celery": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
        "apps": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}

# ==============================================================================
# PHASE 11: STATIC FILES
# ==============================================================================
STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {
        "BACKEND": (
            "django.contrib.staticfiles.storage.StaticFilesStorage" if RELAXED
            else "whitenoise.storage.CompressedManifestStaticFilesStorage"
        ),
    },
}

# ==============================================================================
# PHASE 12: AUTHENTICATION & DRF
# ==============================================================================
AUTH_USER_MODEL = "accounts.User"

SIMPLE_JWT = {
    "SIGNING_KEY": os.getenv("JWT_SIGNING_KEY", SECRET_KEY),
    "ALGORITHM": "HS256",
}

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "apps.accounts.authentication.SecureJWTAuthentication",
        "rest_framework.authentication.SessionAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "EXCEPTION_HANDLER": "apps.utils.exceptions.custom_exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.SearchFilter",
        "rest_framework.filters.OrderingFilter",
    ],
    # Drivers poll every 5-15s; the scope caps a misbehaving client
    "DEFAULT_THROTTLE_RATES": {
        "location_ping": "10000/min" if TESTING else os.getenv("LOCATION_PING_RATE", "30/min"),
    },
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Delivery Dispatch API",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}

# ==============================================================================
# PHASE 13: SECURITY HEADERS
# ==============================================================================
X_FRAME_OPTIONS = "DENY" if not DEBUG else "SAMEORIGIN"
SECURE_CONTENT_TYPE_NOSNIFF = True

# ==============================================================================
# PHASE 14: DISPATCH
# Read at call time through apps.delivery.conf
# ==============================================================================
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"
USE_TZ = True
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")

DISPATCH_OFFER_TTL_SECONDS = int(os.getenv("DISPATCH_OFFER_TTL_SECONDS", 120))
DISPATCH_MAX_SEARCH_RADIUS_METERS = float(os.getenv("DISPATCH_MAX_SEARCH_RADIUS_METERS", 10000))
DISPATCH_DEFAULT_SEARCH_RADIUS_METERS = float(os.getenv("DISPATCH_DEFAULT_SEARCH_RADIUS_METERS", 5000))
DISPATCH_COMMISSION_RATE = Decimal(os.getenv("DISPATCH_COMMISSION_RATE", "0.10"))
# Reserved: reported to the driver app, never completes a delivery on its own
DISPATCH_AUTO_COMPLETE_DISTANCE_METERS = float(os.getenv("DISPATCH_AUTO_COMPLETE_DISTANCE_METERS", 50))
DISPATCH_SLA_MINUTES = int(os.getenv("DISPATCH_SLA_MINUTES", 10))

# ==============================================================================
# PHASE 15: ERROR TRACKING (OPTIONAL)
# ==============================================================================
if os.getenv("SENTRY_DSN") and not TESTING:
    sentry_sdk.init(
        dsn=os.getenv("SENTRY_DSN"),
        integrations=[DjangoIntegration(), RedisIntegration(), CeleryIntegration()],
        environment=DJANGO_ENV,
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", 0.1)),
    )
    logger.info("Sentry error tracking initialized")
else:
    logger.info("Sentry not configured (optional)")

logger.info(f"Django configuration loaded (DEBUG={DEBUG}, hosts={ALLOWED_HOSTS})")
