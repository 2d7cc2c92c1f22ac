"""Controller-side service that mirrors the daemon's components."""

from __future__ import annotations

import queue
import sys
import threading
import time
from dataclasses import dataclass

from .client_components import Component, ComponentError, Cpu, Fan, Visitor
from .fields import Category, ComponentList, Desc, FieldError
from .proto import (
    MsgBody,
    MsgCommand,
    MsgMode,
    MsgPacket,
    ProtoError,
    recv_msg,
    send_msg,
)
from .stream import SocketStream, StreamError


class ServiceError(Exception):
    """The service could not talk to the daemon or was asked for a missing component."""


@dataclass
class ComponentInfo:
    """Description of a component and whether it is in use."""

    desc: Desc
    active: bool = True


@dataclass
class ServiceConfig:
    """Where the daemon listens and how often component status is refreshed."""

    socket_name: str
    interval: float = 1


@dataclass
class ServiceHandle:
    """Threads started by ``Service.init``."""

    communicator: threading.Thread
    refresher: threading.Thread

    def join(self) -> None:
        """Wait for both service threads to finish."""
        self.communicator.join()
        self.refresher.join()


class Service:
    """Keeps local component objects in step with the daemon.

    Requests from components are queued and sent one at a time; each reply
    is routed back to the component it names.
    """

    def __init__(self, config: ServiceConfig) -> None:
        self.config = config
        self.components_info: dict[int, ComponentInfo] = {}
        self._components: dict[int, Component] = {}
        self._lock = threading.RLock()
        self._sender: queue.Queue[MsgBody] = queue.Queue()

    @classmethod
    def init(cls, socket_name: str) -> tuple[Service, ServiceHandle]:
        """Connect to the daemon, learn its components and start the service threads."""
        service = cls(ServiceConfig(socket_name))
        communicator = service._spawn_communicator()
        refresher = service._spawn_refresher()
        return service, ServiceHandle(communicator, refresher)

    def accept(self, id_num: int, visitor: Visitor) -> None:
        """Let ``visitor`` visit the component with id ``id_num``."""
        with self._lock:
            component = self._components.get(id_num)
            if component is None:
                raise ServiceError(f"Component not found for index: {id_num}")
            component.accept(visitor)

    def get_components(self) -> dict[int, Desc]:
        """Return the description of every known component by id."""
        with self._lock:
            return {id_num: info.desc for id_num, info in self.components_info.items()}

    def activate_component(self, id_num: int) -> None:
        self._set_active(id_num, True)

    def deactivate_component(self, id_num: int) -> None:
        self._set_active(id_num, False)

    def _set_active(self, id_num: int, active: bool) -> None:
        with self._lock:
            info = self.components_info.get(id_num)
            if info is None:
                print(f"Component not found for index: {id_num}", file=sys.stderr)
                return
            info.active = active

    def _add_components(self, component_list: ComponentList) -> None:
        with self._lock:
            for id_num, desc in component_list.components.items():
                if desc.category is Category.GPU:
                    raise ServiceError(f"GPU components are not supported (index {id_num})")
                self.components_info[id_num] = ComponentInfo(desc)
                if desc.category is Category.CPU:
                    self._components[id_num] = Cpu(id_num, self._sender)
                else:
                    self._components[id_num] = Fan(id_num, self._sender)

    @staticmethod
    def _fetch_component_list(stream: SocketStream) -> ComponentList:
        packet = MsgPacket(MsgMode.REPLY, None, 0, 0, MsgCommand.GET_COMPONENT_LIST)
        try:
            send_msg(stream, MsgBody(packet, []))
            reply = recv_msg(stream)
            if not reply.payload:
                raise ServiceError("component list reply carries no payload")
            return ComponentList.deserialize(reply.payload[0])
        except ProtoError as err:
            raise ServiceError(f"ProtoError occurred: {err}") from err
        except FieldError as err:
            raise ServiceError(f"Invalid component list: {err}") from err

    def _spawn_communicator(self) -> threading.Thread:
        try:
            stream = SocketStream.connect(self.config.socket_name)
        except StreamError as err:
            raise ServiceError(f"Failed to create socket stream: {err}") from err
        try:
            self._add_components(self._fetch_component_list(stream))
        except BaseException:
            stream.close()
            raise
        thread = threading.Thread(
            target=self._communicate, args=(stream,), name="clevofan-communicator", daemon=True
        )
        thread.start()
        return thread

    def _communicate(self, stream: SocketStream) -> None:
        with stream:
            while True:
                body = self._sender.get()
                try:
                    send_msg(stream, body)
                    reply = recv_msg(stream)
                except ProtoError as err:
                    print(f"Connection to daemon lost: {err}", file=sys.stderr)
                    return
                packet = reply.packet
                with self._lock:
                    component = self._components.get(packet.id_num)
                    if component is None:
                        print(f"Component not found for index: {packet.id_num}", file=sys.stderr)
                        continue
                    try:
                        component.update_from_reply(packet.command, reply.payload)
                    except ComponentError as err:
                        print(
                            f"Bad reply for component {packet.id_num}: {err}", file=sys.stderr
                        )

    def _spawn_refresher(self) -> threading.Thread:
        thread = threading.Thread(target=self._refresh, name="clevofan-refresher", daemon=True)
        thread.start()
        return thread

    def _refresh(self) -> None:
        while True:
            with self._lock:
                for component in self._components.values():
                    component.refresh_status()
            time.sleep(self.config.interval)