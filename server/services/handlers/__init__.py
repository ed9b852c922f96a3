"""Node handlers package - built-in steps for the step invoker.

- triggers.py: manual, webhook and schedule triggers
- http.py: HTTP Request
- utility.py: Log, Delay
"""

# Trigger handlers
from .triggers import (
    handle_trigger,
)

# HTTP handlers
from .http import (
    handle_http_request,
)

# Utility handlers
from .utility import (
    handle_log,
    handle_delay,
)

__all__ = [
    'handle_trigger',
    'handle_http_request',
    'handle_log',
    'handle_delay',
]
