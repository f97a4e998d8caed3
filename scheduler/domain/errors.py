class SchedulerError(Exception):
    code = "scheduler_error"


class NotFound(SchedulerError):
    code = "not_found"


class InvalidArgument(SchedulerError):
    code = "invalid_argument"


class StoreUnavailable(SchedulerError):
    """Transient failure of the backing store. Reads may be retried by the caller."""

    code = "store_unavailable"


class NoData:
    """Sentinel for "nothing to compute from". Falsy, never equal to a number."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "NO_DATA"


NO_DATA = NoData()
