"""
asyncstatsd: send metrics from the command line

"""
import argparse
import logging
import os
import sys
from concurrent.futures import TimeoutError as FutureTimeoutError

from asyncstatsd import config, logutil, version
from asyncstatsd.client import StatsClient
from asyncstatsd.common import MeasureMode
from asyncstatsd.errors import Error, FlushTimeoutError, InvalidConfigurationError
from asyncstatsd.metric import Count, Gauge, Histogram, Set, Timing

METRIC_TYPES = {
    "c": Count,
    "g": Gauge,
    "ms": Timing,
    "h": Histogram,
    "s": Set,
}


def parse_number(text):
    try:
        return int(text)
    except ValueError:
        return float(text)


def parse_metric(text):
    """Parse "type:name:value", e.g. "c:requests:1" or "s:users:alice" """
    parts = text.split(":", 2)
    if len(parts) != 3 or parts[0] not in METRIC_TYPES:
        raise argparse.ArgumentTypeError(
            "invalid metric {!r}, expected TYPE:NAME:VALUE with TYPE one of {}".format(text, ", ".join(METRIC_TYPES))
        )
    metric_type, name, value = parts
    metric_class = METRIC_TYPES[metric_type]
    if metric_class is Set:
        return Set(name, value)
    try:
        return metric_class(name, parse_number(value))
    except ValueError:
        raise argparse.ArgumentTypeError("invalid value {!r} for metric {!r}".format(value, name))


class MetricSender:
    def __init__(self):
        self.log = logging.getLogger(self.__class__.__name__)

    def load_config(self, args):
        client_config = config.read_json_config_file(args.config) if args.config else config.ClientConfig()
        overrides = {}
        if args.host is not None:
            overrides["host"] = args.host
        if args.port is not None:
            overrides["port"] = args.port
        if args.prefix is not None:
            overrides["prefix"] = args.prefix
        if args.measure_as_histogram:
            overrides["measure_mode"] = MeasureMode.histogram
        if overrides:
            client_config = config.ClientConfig.from_dict({**client_config.model_dump(), **overrides})
        return client_config

    def send(self, client_config, metrics):
        with StatsClient.from_config(client_config) as client:
            try:
                client.send(metrics).result(timeout=client_config.close_timeout)
            except FutureTimeoutError:
                raise FlushTimeoutError("Metrics were not sent in {}s".format(client_config.close_timeout))
        self.log.info("Sent %d metric(s) to %s:%s", len(metrics), client_config.host, client_config.port)

    def run(self, args=None):
        parser = argparse.ArgumentParser()
        parser.add_argument("--version", action="version", help="show program version", version=version.__version__)
        parser.add_argument("--config", help="client config file", default=os.environ.get("ASYNCSTATSD_CONFIG"))
        parser.add_argument("--host", help="StatsD host")
        parser.add_argument("--port", help="StatsD port", type=int)
        parser.add_argument("--prefix", help="prefix for all metric names")
        parser.add_argument(
            "--measure-as-histogram",
            help="send timings as histogram (h) values instead of ms",
            default=False,
            action="store_true"
        )
        parser.add_argument("metrics", metavar="METRIC", nargs="+", type=parse_metric, help="TYPE:NAME:VALUE")
        args = parser.parse_args(args)

        client_config = self.load_config(args)
        self.send(client_config, args.metrics)
        return 0


def main():
    logutil.configure_logging(level=logging.INFO)
    tool = MetricSender()
    try:
        return tool.run()
    except KeyboardInterrupt:
        print("*** interrupted by keyboard ***")
        return 1
    except InvalidConfigurationError as ex:
        tool.log.error("FATAL: %s: %s", ex.__class__.__name__, ex)
        return 1
    except Error as ex:
        tool.log.error("Sending metrics failed: %s: %s", ex.__class__.__name__, ex)
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
