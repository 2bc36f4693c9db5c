import logging
import sys

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "sms-dispatch-engine"


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        if not log_record.get('service'):
            log_record['service'] = SERVICE_NAME
        if not log_record.get('level'):
            log_record['level'] = record.levelname
        if not log_record.get('timestamp'):
            log_record['timestamp'] = self.formatTime(record, self.datefmt)
        if 'message' not in log_record:
            log_record['message'] = record.getMessage()

        # Correlate provider attempts with their dispatch when passed via extra
        if hasattr(record, 'dispatch_id'):
            log_record['dispatch_id'] = record.dispatch_id
        if hasattr(record, 'gateway'):
            log_record['gateway'] = record.gateway


def configure_logging(level: str = "INFO", service_name: str | None = None) -> None:
    global SERVICE_NAME
    if service_name:
        SERVICE_NAME = service_name

    root = logging.getLogger()
    root.setLevel(level.upper())

    # Drop handlers installed by earlier calls or by the ASGI server
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter('%(timestamp)s %(level)s %(service)s %(message)s'))
    root.addHandler(handler)

    for name in ("uvicorn.access", "uvicorn.error"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.propagate = False