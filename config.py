import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Base configuration shared across all environments."""
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')

    # Channel used when an evaluation request does not name one
    PROMO_DEFAULT_CHANNEL = os.environ.get('PROMO_DEFAULT_CHANNEL', 'pos').lower()

    # Logging
    LOG_DIR   = os.environ.get('LOG_DIR', os.path.join(os.getcwd(), 'logs'))
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Trust X-Forwarded-* headers from a reverse proxy
    PROXY_FIX = False

class DevelopmentConfig(Config):
    """Development environment configuration."""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')

class ProductionConfig(Config):
    """Production environment configuration."""
    DEBUG = False

    # Ensure SECRET_KEY is set
    SECRET_KEY = os.environ.get('SECRET_KEY')

    PROXY_FIX = os.environ.get('PROXY_FIX', 'True').lower() == 'true'


class TestingConfig(Config):
    """Testing environment configuration."""
    TESTING = True
    PROMO_DEFAULT_CHANNEL = 'pos'
    LOG_DIR = None   # stdout only
    LOG_LEVEL = 'WARNING'

config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
