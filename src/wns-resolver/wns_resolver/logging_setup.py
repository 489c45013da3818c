import logging
import sys

from pythonjsonlogger.json import JsonFormatter

SERVICE_NAME = "wns-resolver"
TEXT_FORMAT = "[WNS] %(asctime)s %(levelname)s %(name)s: %(message)s"


class ServiceFilter(logging.Filter):
    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        record.service = self._service_name
        return True


def configure_logging(level: str = "INFO", json_format: bool = False, enabled: bool = True) -> None:
    """
    Install a single stderr handler on the root logger.

    Disabled logging keeps WARNING and above so failed lookups stay visible.
    RPC header values are never logged anywhere in the package.
    """
    if json_format:
        formatter: logging.Formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s %(service)s",
            rename_fields={"levelname": "level", "name": "logger"},
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    effective = level if enabled else "WARNING"
    # stdout is reserved for command output
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(effective)
    handler.setFormatter(formatter)
    handler.addFilter(ServiceFilter(SERVICE_NAME))

    root = logging.getLogger()
    root.setLevel(effective)
    root.handlers = [handler]
