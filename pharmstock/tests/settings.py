"""
Django settings for running the Pharmstock test suite.
"""

SECRET_KEY = 'pharmstock-tests'

INSTALLED_APPS = [
    'django.contrib.contenttypes',
    'django.contrib.auth',
    'django.contrib.admin',
    'django.contrib.sessions',
    'django.contrib.messages',
    'pharmstock',
]

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

USE_TZ = True
TIME_ZONE = 'UTC'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

PHARMSTOCK = {
    'CLOCK': 'pharmstock.tests.clocks.frozen_now',
}
