"""
Optional RFC5424 mirror of node lifecycle events over UDP.

Off unless SYSLOG_ENABLED=1. The payload uses the same key=value shape as
the stderr log so a collector can filter on event/node_id/msg_id.
"""
import socket
from datetime import datetime, timezone

from common.config import (
    SYSLOG_ENABLED,
    SYSLOG_HOST,
    SYSLOG_PORT,
    SYSLOG_FACILITY,
)

APP_NAME = "gossip-node"

# RFC5424 severities
SEVERITY = {"ERROR": 3, "WARN": 4, "INFO": 6}

_sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)


def _lan_ip() -> str:
    probe = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # connect() on UDP sends nothing; it only picks the outbound interface
        probe.connect(("8.8.8.8", 80))
        return probe.getsockname()[0]
    except OSError:
        return "127.0.0.1"
    finally:
        probe.close()


def _fmt(v) -> str:
    if v is None:
        return "-"
    if isinstance(v, (set, frozenset, list, tuple)):
        return ",".join(str(x) for x in v)
    return str(v)


def format_syslog(level: str, message: str, node_id=None, event=None, msg_id=None, src=None, dest=None, **extra) -> str:
    pri = SYSLOG_FACILITY * 8 + SEVERITY[level]
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

    parts = [
        f"event={_fmt(event)}",
        f"level={level}",
        f"node_id={_fmt(node_id)}",
        f'msg="{message}"',
    ]
    for k, v in (("msg_id", msg_id), ("src", src), ("dest", dest)):
        if v is not None:
            parts.append(f"{k}={_fmt(v)}")
    parts.extend(f"{k}={_fmt(extra[k])}" for k in sorted(extra))

    return f"<{pri}>1 {stamp} {_fmt(node_id)} {APP_NAME} - - - " + " ".join(parts)


def emit(level: str, message: str, **fields):
    if not SYSLOG_ENABLED:
        return

    host = _lan_ip() if SYSLOG_HOST == "auto" else SYSLOG_HOST
    data = format_syslog(level, message, **fields).encode("utf-8", errors="replace")

    # best effort
    try:
        _sock.sendto(data, (host, SYSLOG_PORT))
    except OSError:
        pass


def LOG_INFO(message: str, **fields):
    emit("INFO", message, **fields)


def LOG_WARN(message: str, **fields):
    emit("WARN", message, **fields)


def LOG_ERROR(message: str, **fields):
    emit("ERROR", message, **fields)
