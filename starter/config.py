import os


class Config:
    # Directory service (matchmaking backend)
    DIRECTORY_TITLE_ID = os.getenv('DIRECTORY_TITLE_ID', '5EA1')
    DIRECTORY_SDK_VERSION = os.getenv('DIRECTORY_SDK_VERSION', 'UE4MKPL-1.49.201027')
    DIRECTORY_USER_AGENT = os.getenv(
        'DIRECTORY_USER_AGENT',
        'Astro/++UE4+Release-4.23-CL-0 Windows/10.0.19041.1.768.64bit'
    )
    DIRECTORY_ACCOUNT_PREFIX = os.getenv('DIRECTORY_ACCOUNT_PREFIX', 'astro-starter_')

    # Reconciliation loop
    TICK_INTERVAL = float(os.getenv('TICK_INTERVAL', '4.0'))
    QUERY_TIMEOUT = float(os.getenv('QUERY_TIMEOUT', '1.0'))
    AUTH_TTL = float(os.getenv('AUTH_TTL', '3600'))
    GRACE_CYCLES = int(os.getenv('GRACE_CYCLES', '4'))
    OUTAGE_TOLERANCE = float(os.getenv('OUTAGE_TOLERANCE', '3600'))

    # Supervisor
    STARTER_DIR = os.getenv('STARTER_DIR', os.getcwd())
    SHUTDOWN_GRACE = float(os.getenv('SHUTDOWN_GRACE', '20'))
    SILENT_MARKER_TTL = float(os.getenv('SILENT_MARKER_TTL', '60'))
    PUBLIC_DATA_TTL = float(os.getenv('PUBLIC_DATA_TTL', '60'))
    PUBLIC_IP_URL = os.getenv('PUBLIC_IP_URL', 'https://api.ipify.org')

    # Management web surface
    WEB_HOST = os.getenv('WEB_HOST', '0.0.0.0')
    WEB_PORT = int(os.getenv('WEB_PORT', '5000'))

    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
    LOG_TO_FILE = os.getenv('LOG_TO_FILE', 'true').lower() == 'true'


class DevelopmentConfig(Config):
    DEBUG = True
    LOG_LEVEL = 'DEBUG'


class ProductionConfig(Config):
    DEBUG = False


class TestingConfig(Config):
    TESTING = True
    DEBUG = False
    LOG_TO_FILE = False
    SHUTDOWN_GRACE = 0.0
    SILENT_MARKER_TTL = 0.0
    PUBLIC_IP_URL = 'http://localhost/ip'


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': ProductionConfig
}


def get_config(config_name: str = None):
    """Resolve a config class by name, falling back to STARTER_ENV."""
    if config_name is None:
        config_name = os.getenv('STARTER_ENV', 'default')
    return config.get(config_name, config['default'])
