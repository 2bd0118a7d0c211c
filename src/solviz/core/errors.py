class SolvizError(Exception):
    pass


class DataSourceError(SolvizError):
    pass


class RateLimitError(DataSourceError):
    pass


class InvalidAddressError(SolvizError):
    pass
