"""Daemon service: answers controller requests and keeps hardware readings fresh."""

from __future__ import annotations

import sys
import threading
import time
from dataclasses import dataclass

from .daemon_components import CommandError, Component, ComponentError
from .fields import ComponentList, FieldError
from .proto import (
    MsgBody,
    MsgCommand,
    MsgError,
    MsgErrorKind,
    MsgMode,
    MsgPacket,
    ProtoError,
    recv_msg,
    send_msg,
)
from .stream import SocketStream, StreamError, StreamListener


class ServiceError(Exception):
    """A request could not be served or the service could not start."""


@dataclass
class ServiceConfig:
    """Socket the daemon listens on and how often hardware is refreshed, in seconds."""

    socket_name: str
    monitor_interval: float = 3.0


def handle_msg(hardwares: dict[int, Component], stream: SocketStream, body: MsgBody) -> None:
    """Answer one request on ``stream`` using the registered ``hardwares``.

    A component list request is answered with every component's description;
    any other request goes to the component named by its id number. A command
    the component rejects is answered with an unsupported-operation error.
    """
    request = body.packet
    error = request.error
    payload: list[bytes] = []
    if request.command is MsgCommand.GET_COMPONENT_LIST:
        listing = ComponentList({id_num: hw.get_desc() for id_num, hw in hardwares.items()})
        try:
            payload.append(listing.serialize())
        except FieldError as err:
            raise ServiceError(f"Failed to encode component list: {err}") from err
    else:
        hardware = hardwares.get(request.id_num)
        if hardware is None:
            raise ServiceError(f"Component not found for index: {request.id_num}")
        try:
            payload = list(hardware.handle_command(request.command, body.payload))
        except CommandError:
            error = MsgError(
                MsgErrorKind.UNSUPPORTED_OPERATION,
                f"Operation not supported by the hardware:{request.command}",
            )
    reply = MsgPacket(MsgMode.REPLY, error, request.sequence, request.id_num, request.command)
    send_msg(stream, MsgBody(reply, payload))


class Service:
    """Holds the daemon's hardware components and serves them over a local socket."""

    def __init__(self, socket_name: str) -> None:
        self.config = ServiceConfig(socket_name)
        self.components: dict[int, Component] = {}
        self._lock = threading.Lock()

    def add_hardware(self, id_num: int, hardware: Component) -> None:
        """Register ``hardware`` under ``id_num``, replacing any earlier entry."""
        if not 0 <= id_num <= 0xFF:
            raise ValueError(f"hardware id {id_num} is outside 0..255")
        with self._lock:
            self.components[id_num] = hardware

    def spawn_monitor(self) -> threading.Thread:
        """Start a thread that refreshes every component's status periodically."""
        thread = threading.Thread(target=self._monitor, name="clevofan-monitor", daemon=True)
        thread.start()
        return thread

    def _monitor(self) -> None:
        while True:
            with self._lock:
                for id_num, hardware in self.components.items():
                    try:
                        hardware.refresh_status()
                    except (ComponentError, OSError) as err:
                        print(f"Failed to refresh component {id_num}: {err}", file=sys.stderr)
            time.sleep(self.config.monitor_interval)

    def spawn_msg_handler(self) -> threading.Thread:
        """Listen on the configured socket and serve clients one after another."""
        try:
            listener = StreamListener(self.config.socket_name)
        except StreamError as err:
            raise ServiceError(f"Failed to listen on {self.config.socket_name}: {err}") from err
        thread = threading.Thread(
            target=self._serve, args=(listener,), name="clevofan-msg-handler", daemon=True
        )
        thread.start()
        return thread

    def _serve(self, listener: StreamListener) -> None:
        with listener:
            while True:
                try:
                    stream = listener.accept()
                except StreamError as err:
                    print(f"Failed to accept stream connection: {err}", file=sys.stderr)
                    return
                print("Stream accepted, starting to handle requests...")
                with stream:
                    self._serve_client(stream)

    def _serve_client(self, stream: SocketStream) -> None:
        while True:
            try:
                body = recv_msg(stream)
            except (ProtoError, StreamError) as err:
                print(f"Error receiving message: {err}")
                return
            with self._lock:
                try:
                    handle_msg(self.components, stream, body)
                except (ServiceError, ProtoError, StreamError) as err:
                    print(f"Failed to handle message: {err}", file=sys.stderr)
                    return