"""Status ranges and limits for outbound HTTP."""

HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300
HTTP_STATUS_BAD_REQUEST = 400
HTTP_STATUS_TOO_MANY_REQUESTS = 429
HTTP_STATUS_SERVER_ERROR_MIN = 500
HTTP_STATUS_SERVER_ERROR_MAX = 600

# A runner page of 100 entries is a few tens of KB.
DEFAULT_MAX_RESPONSE_SIZE_BYTES = 5 * 1024 * 1024

DEFAULT_CHUNK_SIZE = 8192

# Upper bound on a honored Retry-After, in seconds.
MAX_RETRY_AFTER_SECONDS = 60
