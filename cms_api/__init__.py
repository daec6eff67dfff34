from cms_api.middleware.validate_batch import (
    Proceed,
    Reject,
    batch_dependency,
    run_with_continuation,
    validate_batch,
)
from cms_api.utils.sanitize_query import sanitize_query

__version__ = "1.0.0"
