from pathlib import Path

from celery.schedules import crontab
from decouple import Csv, config

# -------------------------------
# Diretórios base
# -------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent

# -------------------------------
# Segurança e debug
# -------------------------------
SECRET_KEY = config('SECRET_KEY', default='dev-insecure-change-me')
DEBUG = config('DEBUG', default=False, cast=bool)
ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,testserver', cast=Csv())

# -------------------------------
# Cookies & CSRF
# -------------------------------
SESSION_COOKIE_SECURE   = config('SESSION_COOKIE_SECURE', default=False, cast=bool) # Desenvolvido para HTTPS
SESSION_COOKIE_HTTPONLY = config('SESSION_COOKIE_HTTPONLY', default=True, cast=bool)
CSRF_COOKIE_SECURE      = config('CSRF_COOKIE_SECURE', default=False, cast=bool) # Desenvolvido para HTTPS

SECURE_SSL_REDIRECT     = config('SECURE_SSL_REDIRECT', default=False, cast=bool)
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')

# -------------------------------
# CORS
# -------------------------------
CORS_ALLOW_ALL_ORIGINS = config('CORS_ALLOW_ALL_ORIGINS', default=False, cast=bool)
CORS_ALLOW_CREDENTIALS = config('CORS_ALLOW_CREDENTIALS', default=True, cast=bool)
CSRF_TRUSTED_ORIGINS   = config('CSRF_TRUSTED_ORIGINS', default='http://localhost:5173', cast=Csv())
CORS_ALLOWED_ORIGINS   = config('CORS_ALLOWED_ORIGINS', default='http://localhost:5173', cast=Csv())
CORS_ALLOW_HEADERS     = config(
    'CORS_ALLOW_HEADERS',
    default='Authorization,Content-Type,X-Request-ID,X-Sweep-Token,X-Service-Token',
    cast=Csv(),
)

# -------------------------------
# Celery
# -------------------------------
CELERY_BROKER_URL                 = config('CELERY_BROKER_URL', default='redis://localhost:6379/0')
CELERY_RESULT_BACKEND             = config('CELERY_RESULT_BACKEND', default='redis://localhost:6379/1')
CELERY_TASK_ACKS_LATE             = True
CELERY_TASK_REJECT_ON_WORKER_LOST = True
CELERY_WORKER_PREFETCH_MULTIPLIER = 1
CELERY_TASK_ALWAYS_EAGER          = config('CELERY_TASK_ALWAYS_EAGER', default=False, cast=bool)
CELERY_ACCEPT_CONTENT             = ["json"]
CELERY_TASK_SERIALIZER            = "json"
CELERY_TASK_QUEUES = {
    "default":     {"exchange": "default",     "routing_key": "default"},
    "dead_letter": {"exchange": "dead_letter", "routing_key": "dead_letter"},
    "reminders":   {"exchange": "reminders",   "routing_key": "reminders"},
}
CELERY_TASK_DEFAULT_QUEUE = 'default'
CELERY_TASK_DEFAULT_EXCHANGE = 'default'
CELERY_TASK_DEFAULT_ROUTING_KEY = 'default'
CELERY_TASK_ROUTES = {
    "iafe_api.tasks.run_appointment_notifications": {"queue": "reminders"},
}

# --- AGENDADOR (CELERY BEAT) ---
CELERY_BEAT_SCHEDULER = 'django_celery_beat.schedulers:DatabaseScheduler'

CELERY_BEAT_SCHEDULE = {
    # Cadastros pending_payment com prazo vencido → expired.
    'expire-registrations': {
        'task': 'iafe_api.tasks.expire_registrations',
        'schedule': crontab(minute='*/15'),
    },
    # Cadastros presos em paid (provisionamento interrompido).
    'resume-provisioning': {
        'task': 'iafe_api.tasks.resume_provisioning',
        'schedule': crontab(minute='*/5'),
    },
    # Fim de período: trial → expired, cancelamento agendado → cancelled.
    'expire-subscriptions': {
        'task': 'iafe_api.tasks.expire_subscriptions',
        'schedule': crontab(minute=0),
    },
    # Lembretes de compromissos (janela de ±REMINDER_TOLERANCE_MINUTES).
    'appointment-notifications': {
        'task': 'iafe_api.tasks.run_appointment_notifications',
        'schedule': crontab(minute='*/5'),
    },
}

# -------------------------------
# Asaas (gateway de pagamento)
# -------------------------------
ASAAS_API_URL       = config('ASAAS_API_URL', default='https://api-sandbox.asaas.com/v3')
ASAAS_API_KEY       = config('ASAAS_API_KEY', default='')
ASAAS_TIMEOUT       = config('ASAAS_TIMEOUT', default=10, cast=float)
ASAAS_WEBHOOK_TOKEN = config('ASAAS_WEBHOOK_TOKEN', default='')

# -------------------------------
# Webhooks de saída (n8n → WhatsApp)
# -------------------------------
REMINDER_WEBHOOK_URL = config('REMINDER_WEBHOOK_URL', default='')
OTP_WEBHOOK_URL      = config('OTP_WEBHOOK_URL', default='')
NOTIFIER_TIMEOUT     = config('NOTIFIER_TIMEOUT', default=10, cast=float)
SWEEP_TOKEN          = config('SWEEP_TOKEN', default='')
SERVICE_TOKEN        = config('SERVICE_TOKEN', default='')

# -------------------------------
# Funil de cadastro / assinaturas
# -------------------------------
REGISTRATION_TTL_HOURS     = config('REGISTRATION_TTL_HOURS', default=24, cast=int)
OTP_TTL_MINUTES            = config('OTP_TTL_MINUTES', default=15, cast=int)
TRIAL_DAYS                 = config('TRIAL_DAYS', default=7, cast=int)
PROVISIONING_LEASE_SECONDS = config('PROVISIONING_LEASE_SECONDS', default=120, cast=int)
REMINDER_TOLERANCE_MINUTES = config('REMINDER_TOLERANCE_MINUTES', default=5, cast=int)

# -------------------------------
# JWT (emissão é externa; aqui só validamos)
# -------------------------------
JWT_SECRET    = config('JWT_SECRET', default=SECRET_KEY)
JWT_ALGORITHM = config('JWT_ALGORITHM', default='HS256')

# -------------------------------
# Apps, Middleware, URLs
# -------------------------------
INSTALLED_APPS = [
    'corsheaders',
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'drf_yasg',
    'django_prometheus',
    'django_celery_beat',
    'iafe_api.apps.IafeApiConfig',
    'plugins.django_interface.apps.DjangoInterfaceConfig',
]

MIDDLEWARE = [
    'django_prometheus.middleware.PrometheusBeforeMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'plugins.django_interface.request_middleware.RequestContextMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django_prometheus.middleware.PrometheusAfterMiddleware',
]

ROOT_URLCONF = 'iafe_api.urls'
WSGI_APPLICATION = 'iafe_api.wsgi.application'
ASGI_APPLICATION = 'iafe_api.asgi.application'

# -------------------------------
# Templates
# -------------------------------
TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

# -------------------------------
# REST Framework
# -------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "iafe_core.adapters.security.jwt_authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "EXCEPTION_HANDLER": "plugins.django_interface.exception_handler.provisioning_exception_handler",
    "UNAUTHENTICATED_USER": None,
}
SWAGGER_SETTINGS = {
    'SECURITY_DEFINITIONS': {
        'Bearer': {
            'type': 'apiKey', 'name': 'Authorization', 'in': 'header'
        }
    },
}

# -------------------------------
# Banco de Dados
# -------------------------------
DB_ENGINE = config('DB_ENGINE', default='sqlite')

if DB_ENGINE == 'postgresql':
    DATABASES = {
        'default': {
            'ENGINE':   'django.db.backends.postgresql',
            'NAME':     config('DB_NAME', default='iafe'),
            'USER':     config('DB_USER', default='iafe'),
            'PASSWORD': config('DB_PASS', default=''),
            'HOST':     config('DB_HOST', default='localhost'),
            'PORT':     config('DB_PORT', default='5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME':   config('DB_NAME', default=str(BASE_DIR / 'db.sqlite3')),
        }
    }

# -------------------------------
# Cache (locks das varreduras)
# -------------------------------
REDIS_URL = config('REDIS_URL', default='')
CACHES = {
    'default': (
        {'BACKEND': 'django.core.cache.backends.redis.RedisCache', 'LOCATION': REDIS_URL}
        if REDIS_URL
        else {'BACKEND': 'django.core.cache.backends.locmem.LocMemCache', 'LOCATION': 'iafe'}
    )
}

# -------------------------------
# Internacionalização
# -------------------------------
LANGUAGE_CODE = 'pt-br'
TIME_ZONE     = 'America/Sao_Paulo'
USE_I18N      = True
USE_TZ        = True

# -------------------------------
# Arquivos estáticos
# -------------------------------
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.FileSystemStorage"},
    "staticfiles": {"BACKEND": "whitenoise.storage.CompressedManifestStaticFilesStorage"},
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'
