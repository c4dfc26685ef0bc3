"""
Django settings for the storefront.

Secrets come from the environment - never hardcode credentials.
For local development, `manage.py generate_env` writes a .env.development
file that is read here when present.
Run with: uv run python apps/web/manage.py runserver
"""

from pathlib import Path

import environ  # type: ignore[import-untyped]

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent
PROJECT_ROOT = BASE_DIR.parent.parent

# Initialize environ
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
    LOG_LEVEL=(str, "INFO"),
    CHECKOUT_REDIRECT_DELAY=(float, 10.0),
    CHECKOUT_HTTP_TIMEOUT=(float, 30.0),
    CHECKOUT_REQUIRE_PAID=(bool, True),
)

ENV_FILE = PROJECT_ROOT / ".env.development"
if ENV_FILE.exists():
    environ.Env.read_env(ENV_FILE)

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env("SECRET_KEY")

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env("DEBUG")

ALLOWED_HOSTS = env("ALLOWED_HOSTS")

# Application definition
INSTALLED_APPS = [
    "apps.web.checkout",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "apps.web.config.urls"

ASGI_APPLICATION = "apps.web.config.asgi.application"

# The cart is client-local state: keep it in a signed cookie, no database
SESSION_ENGINE = "django.contrib.sessions.backends.signed_cookies"
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_SECURE = not DEBUG

# Internationalization
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# Checkout
# Ordering API that creates and reports Stripe Checkout sessions
STOREFRONT_API_URL = env("STOREFRONT_API_URL", default="")
STRIPE_PUBLISHABLE_KEY = env("STRIPE_PUBLISHABLE_KEY", default="")
CHECKOUT_GATEWAY = env("CHECKOUT_GATEWAY", default="stripe")
CHECKOUT_HOME_URL = env("CHECKOUT_HOME_URL", default="/")
CHECKOUT_REDIRECT_DELAY = env("CHECKOUT_REDIRECT_DELAY")
CHECKOUT_HTTP_TIMEOUT = env("CHECKOUT_HTTP_TIMEOUT")
CHECKOUT_REQUIRE_PAID = env("CHECKOUT_REQUIRE_PAID")

# Logging
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "apps.web": {"handlers": ["console"], "level": env("LOG_LEVEL")},
    },
}
