"""
asyncstatsd - exception classes

"""


class Error(Exception):
    """Generic asyncstatsd exception"""


class InvalidConfigurationError(Error):
    """Invalid configuration"""


class InvalidMetricError(Error):
    """Metric can't be encoded into a StatsD line"""


class InvalidMetricNameError(InvalidMetricError):
    """Metric name is empty or contains a reserved protocol delimiter"""


class InvalidMetricValueError(InvalidMetricError):
    """Metric value or sample rate is not a finite number in range"""


class SocketError(Error):
    """Operating system rejected or failed a datagram write"""


class ClosedClientError(Error):
    """Client or transport has been closed"""


class FlushTimeoutError(Error):
    """Final flush did not complete within the close grace period"""
