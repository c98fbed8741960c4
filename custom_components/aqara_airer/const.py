"""Constants for the Aqara Airer integration.

This module contains the constants used throughout the integration,
including cloud endpoints, configuration keys and attribute names.
"""

DOMAIN = "aqara_airer"

BASE_URL = "https://aiot-oauth2.aqara.cn"
REDIRECT_URI = "https://www.xiongdianpku.com"

AIRER_MODEL = "lumi.airer.acn02"

ATTR_LEVEL = "level"
ATTR_AIRER_CONTROL = "airer_control"
ATTR_LIGHT_CONTROL = "light_control"

# Percent of travel per millisecond, a full travel takes 8 seconds
DEFAULT_SPEED = 100 / 8 / 1000

DEVICE_RESOLVE_INTERVAL = 1.0  # Seconds between device list queries
DEFAULT_POLL_INTERVAL = 30
MOTION_REFRESH_INTERVAL = 1.0

ERROR_INVALID_AUTH = "invalid_auth"
ERROR_CANNOT_CONNECT = "cannot_connect"
ERROR_API_ERROR = "api_error"
ERROR_UNKNOWN = "unknown_error"

MANUFACTURER = "Aqara"
MODEL_NAME = "Aqara Airer Lite"
