"""Command that runs the fan controller against a running daemon."""

from __future__ import annotations

import argparse
import os
import sys
import threading
import time
from pathlib import Path

from dotenv import dotenv_values, find_dotenv

from .client_service import Service, ServiceError
from .temp_control import Controller

DEFAULT_SOCKET_NAME = "clevo-controler.sock"
_CONTROL_PERIOD = 2.0
_CPU_ID = 0
_FAN_ID = 1


def socket_name_from_env() -> str:
    """Return ``SOCKET_NAME`` from the environment or a ``.env`` file, else the default."""
    value = os.environ.get("SOCKET_NAME")
    if value is not None:
        return value
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        value = dotenv_values(dotenv_path).get("SOCKET_NAME")
        if value is not None:
            return value
    return DEFAULT_SOCKET_NAME


def config_path() -> str:
    """Return the path of ``configs.json`` next to the running program."""
    program = sys.argv[0] if sys.argv and sys.argv[0] else ""
    directory = Path(program).resolve().parent if program else Path.cwd()
    return str(directory / "configs.json")


def _control_loop(service: Service, cfg_path: str) -> None:
    controller = Controller(cfg_path)
    while True:
        service.accept(_CPU_ID, controller)
        service.accept(_FAN_ID, controller)
        time.sleep(_CONTROL_PERIOD)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="clevo-controller",
        description="Control laptop fan speed from CPU temperature via the daemon.",
    )
    parser.parse_args(argv)
    try:
        service, handle = Service.init(socket_name_from_env())
    except ServiceError as err:
        print(f"Failed to create service: {err}", file=sys.stderr)
        return 1
    threading.Thread(
        target=_control_loop,
        args=(service, config_path()),
        name="clevofan-control",
        daemon=True,
    ).start()
    handle.join()
    return 0


if __name__ == "__main__":
    sys.exit(main())