"""
asyncstatsd - configuration validation

"""
import json
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from asyncstatsd.buffer import DEFAULT_MAX_DATAGRAM_SIZE
from asyncstatsd.common import MeasureMode
from asyncstatsd.encoder import check_name
from asyncstatsd.errors import InvalidConfigurationError, InvalidMetricError


class ClientConfig(BaseModel):
    # Unknown keys are most likely typos, and defaults are validated like any other value
    model_config = ConfigDict(extra="forbid", validate_default=True)

    host: str = "127.0.0.1"
    port: int = Field(8125, ge=1, le=65535)
    # integer percentage, see asyncstatsd.buffer
    flush_probability: int = Field(100, ge=0, le=100)
    measure_mode: MeasureMode = MeasureMode.time
    prefix: Optional[str] = None
    max_datagram_size: int = Field(DEFAULT_MAX_DATAGRAM_SIZE, ge=1)
    close_timeout: float = Field(5.0, gt=0)
    idle_flush_interval: float = Field(1.0, gt=0)

    @field_validator("prefix")
    @classmethod
    def prefix_must_be_sendable(cls, value):
        if value:
            try:
                check_name(value, what="prefix")
            except InvalidMetricError as ex:
                raise ValueError(str(ex)) from ex
        return value or None

    @classmethod
    def from_dict(cls, config) -> "ClientConfig":
        if config is None:
            config = {}
        try:
            return cls.model_validate(config)
        except ValidationError as ex:
            raise InvalidConfigurationError("Invalid StatsD client configuration: {}".format(ex)) from ex


def read_json_config_file(filename) -> ClientConfig:
    try:
        with open(filename, "r") as fp:
            config = json.load(fp)
    except FileNotFoundError:
        raise InvalidConfigurationError("Configuration file {!r} does not exist".format(filename))
    except ValueError as ex:
        raise InvalidConfigurationError("Configuration file {!r} does not contain valid JSON: {}".format(filename, str(ex)))
    except OSError as ex:
        raise InvalidConfigurationError(
            "Configuration file {!r} can't be opened: {}".format(filename, ex.__class__.__name__)
        )
    if not isinstance(config, dict):
        raise InvalidConfigurationError("Configuration file {!r} must contain a JSON object".format(filename))
    return ClientConfig.from_dict(config)
