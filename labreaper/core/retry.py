import time
import random
import logging
from botocore.exceptions import ClientError

THROTTLING_CODES = ('Throttling', 'ThrottlingException', 'RequestLimitExceeded', 'SlowDown')


def error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


def retry_call(operation, description, max_attempts=5, base_delay=1.2):
    """Run ``operation``, retrying only when AWS throttles the request.

    Any other ClientError is raised to the caller unchanged; the last
    throttling error is raised once ``max_attempts`` is exhausted.
    """
    for attempt in range(max_attempts):
        try:
            return operation()
        except ClientError as e:
            code = error_code(e)
            if code not in THROTTLING_CODES or attempt == max_attempts - 1:
                raise
            delay = min(base_delay * (2 ** attempt) * random.uniform(0.5, 1.5), 60)
            logging.warning(f"{description} throttled ({code}); retrying in {delay:.2f}s")
            time.sleep(delay)
