# Copyright (c) 2026 Mohammed Hassan. All rights reserved.
# Proprietary and confidential. Unauthorized copying, modification, distribution, or use is prohibited.

import logging
import sys
import contextvars
import threading
import queue
import requests
import json
from datetime import datetime, timezone
from pythonjsonlogger import jsonlogger
from .config import settings

request_id_var = contextvars.ContextVar("request_id", default=None)

SERVICE_NAME = "smo-social-admin"

# Secrets to redact
SECRETS = ["token", "secret", "password", "key", "authorization", "cookie", "nonce"]

def redact(record: dict) -> dict:
    for key, value in list(record.items()):
        if any(s in key.lower() for s in SECRETS) and isinstance(value, str):
            record[key] = "***REDACTED***"
    return record

class RedactingJsonFormatter(jsonlogger.JsonFormatter):
    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        if not log_record.get('timestamp'):
            now = datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')
            log_record['timestamp'] = now

        if log_record.get('level'):
            log_record['level'] = log_record['level'].upper()
        else:
            log_record['level'] = record.levelname

        req_id = request_id_var.get()
        if req_id:
            log_record["request_id"] = req_id

        log_record["service_name"] = SERVICE_NAME
        redact(log_record)

class HttpLogShipper(logging.Handler):
    """Ships formatted log records to an HTTP ingest endpoint from a background thread."""
    def __init__(self, url: str, token: str | None = None, batch_size: int = 50):
        super().__init__()
        self.url = url
        self.token = token
        self.batch_size = batch_size
        self.queue = queue.Queue(maxsize=10000)
        self.worker = threading.Thread(target=self._ship_logs, daemon=True)
        self.worker.start()

    def _ship_logs(self):
        batch = []
        while True:
            try:
                batch.append(self.queue.get(timeout=3.0))
            except queue.Empty:
                pass

            if batch and (len(batch) >= self.batch_size or self.queue.empty()):
                self.send_batch(batch)
                batch = []

    def send_batch(self, batch: list[dict]) -> bool:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        try:
            requests.post(self.url, headers=headers, json=batch, timeout=5.0)
            return True
        except requests.RequestException:
            # a dead ingest endpoint must never take the request thread down with it
            return False

    def emit(self, record):
        try:
            self.queue.put_nowait(json.loads(self.format(record)))
        except Exception:
            self.handleError(record)

def setup_logging():
    logger = logging.getLogger()
    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    formatter = RedactingJsonFormatter('%(timestamp)s %(level)s %(name)s %(message)s')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if settings.log_ingest_url:
        shipper = HttpLogShipper(settings.log_ingest_url, settings.log_ingest_token)
        shipper.setFormatter(formatter)
        logger.addHandler(shipper)

    # Tone down noisy access logs and the scheduler heartbeat
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

def log_event(event: str, level: str = "info", **fields):
    """Helper method to log structured JSON events cleanly."""
    logger = logging.getLogger(SERVICE_NAME)
    fields["event"] = event

    msg_fields = {k: v for k, v in fields.items() if v is not None}

    if level.lower() == "debug":
        logger.debug(event, extra=msg_fields)
    elif level.lower() == "warning":
        logger.warning(event, extra=msg_fields)
    elif level.lower() == "error":
        logger.error(event, extra=msg_fields)
    else:
        logger.info(event, extra=msg_fields)
