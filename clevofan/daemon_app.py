"""Command that runs the hardware daemon."""

from __future__ import annotations

import argparse
import sys
import time

from .daemon_components import Component, Fan
from .daemon_service import Service, ServiceError
from .intel_cpu import CpuError, IntelCpu

DEFAULT_SOCKET_NAME = "clevo-controler.sock"
CPU_ID = 0
FAN_ID = 1


def build_service(socket_name: str, cpu: Component, fan: Component) -> Service:
    """Create a service with ``cpu`` and ``fan`` registered under their fixed ids."""
    service = Service(socket_name)
    service.add_hardware(CPU_ID, cpu)
    service.add_hardware(FAN_ID, fan)
    return service


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="clevo-controllerd",
        description="Serve CPU and fan readings and fan control over a local socket.",
    )
    parser.add_argument(
        "--socket-name",
        default=DEFAULT_SOCKET_NAME,
        help=f"local socket name to listen on (default: {DEFAULT_SOCKET_NAME})",
    )
    args = parser.parse_args(argv)

    try:
        cpu = IntelCpu.init(CPU_ID)
    except CpuError as err:
        print(f"Failed to initialise CPU: {err}", file=sys.stderr)
        return 1
    try:
        fan = Fan()
    except OSError as err:
        print(f"Failed to open embedded controller ports: {err}", file=sys.stderr)
        return 1
    # CPU readings are rejected when refreshed less than a second after the first one.
    time.sleep(1)

    service = build_service(args.socket_name, cpu, fan)
    monitor = service.spawn_monitor()
    try:
        handler = service.spawn_msg_handler()
    except ServiceError as err:
        print(f"Failed to spawn service: {err}", file=sys.stderr)
        return 1
    handler.join()
    monitor.join()
    return 0


if __name__ == "__main__":
    sys.exit(main())