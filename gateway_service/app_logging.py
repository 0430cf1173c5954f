import logging

from pythonjsonlogger import jsonlogger


def setup_logger(level: str = "INFO") -> None:
    """Send every record through one JSON handler on the root logger."""
    handler = logging.StreamHandler()
    handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"levelname": "level", "asctime": "timestamp"},
            static_fields={"service": "gateway"},
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
