MAX_KEY_LENGTH = 256
DEFAULT_MAX_SIZE = 10
DEFAULT_MAX_AGE_MINUTES = 60
