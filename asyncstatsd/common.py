"""
asyncstatsd - common utility classes

"""
import enum
import logging
from queue import Queue
from threading import Thread
from typing import Optional

LOG = logging.getLogger("asyncstatsd.common")


class StrEnum(str, enum.Enum):
    def __str__(self):
        return str(self.value)


@enum.unique
class MeasureMode(StrEnum):
    time = "time"
    histogram = "histogram"


class QuitEvent:
    """Sentinel put in worker queues to make the worker exit once everything queued before it is processed"""


# Should be changed to Queue[Union[OutgoingDatagram, Type[QuitEvent]]] once
# we drop older python versions
SendQueue = Queue


class ClientThread(Thread):
    """Thread running `run_safe`, keeping any exception that terminated it in `exception`"""
    def __init__(self, *args, **kwargs):
        kwargs.setdefault("daemon", True)
        super().__init__(*args, **kwargs)
        self.exception: Optional[Exception] = None

    def run(self):
        try:
            self.run_safe()
        except Exception as ex:
            LOG.exception("Unexpected exception in %s", self.name)
            self.exception = ex
            raise

    def run_safe(self):
        raise NotImplementedError
