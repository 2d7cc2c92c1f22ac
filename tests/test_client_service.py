import dataclasses
import queue
import threading
import time
import uuid

import pytest

from clevofan.client_components import Visitor
from clevofan.client_service import ComponentInfo, Service, ServiceError
from clevofan.fields import (
    Category,
    ComponentList,
    CpuStatus,
    Desc,
    FanIndex,
    FanSpeed,
    Freq,
    Power,
    Temp,
    Usage,
)
from clevofan.proto import MsgBody, MsgCommand, MsgMode, ProtoError, recv_msg, send_msg
from clevofan.stream import StreamError, StreamListener

CPU_DESC = Desc(Category.CPU, 0, "Test CPU")
FAN_DESC = Desc(Category.FAN, 0, "Fan")
STATUS = CpuStatus(Freq([2400, 2600]), Usage([12.5, 50.0]), Power(15000), Temp(65000))


def _reply_payload(body, components):
    command = body.packet.command
    if command is MsgCommand.GET_COMPONENT_LIST:
        return [ComponentList(components).serialize()]
    if command is MsgCommand.GET_STATUS:
        return [STATUS.serialize()]
    if command is MsgCommand.GET_FAN_SPEED:
        return [
            FanIndex.ALL.serialize(),
            FanSpeed(1200).serialize(),
            FanSpeed(900).serialize(),
        ]
    return list(body.payload)


def _serve(listener, components, received):
    try:
        stream = listener.accept()
    except StreamError:
        return
    with stream:
        while True:
            try:
                body = recv_msg(stream)
            except ProtoError:
                return
            received.put(body)
            packet = dataclasses.replace(body.packet, mode=MsgMode.REPLY)
            try:
                send_msg(stream, MsgBody(packet, _reply_payload(body, components)))
            except ProtoError:
                return


@pytest.fixture
def daemon(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    listeners = []

    def start(components):
        name = f"cf-{uuid.uuid4().hex[:12]}"
        listener = StreamListener(name)
        listeners.append(listener)
        received = queue.Queue()
        threading.Thread(
            target=_serve, args=(listener, components, received), daemon=True
        ).start()
        return name, received

    yield start
    for listener in listeners:
        listener.close()


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


class Recorder(Visitor):
    def __init__(self):
        self.cpus = []
        self.fans = []

    def visit_cpu(self, cpu):
        self.cpus.append((cpu.freq, cpu.usage, cpu.power, cpu.temp))

    def visit_fan(self, fan):
        self.fans.append((fan.cpu_fan_speed, fan.gpu_fan_speed))


def test_init_learns_component_list(daemon):
    name, _ = daemon({0: CPU_DESC, 1: FAN_DESC})
    service, _handle = Service.init(name)
    assert service.get_components() == {0: CPU_DESC, 1: FAN_DESC}


def test_first_message_asks_for_component_list(daemon):
    name, received = daemon({0: CPU_DESC})
    Service.init(name)
    first = received.get(timeout=5)
    assert first.packet.command is MsgCommand.GET_COMPONENT_LIST
    assert first.payload == []


def test_cpu_state_follows_daemon_replies(daemon):
    name, _ = daemon({0: CPU_DESC, 1: FAN_DESC})
    service, _handle = Service.init(name)

    def cpu_snapshot():
        recorder = Recorder()
        service.accept(0, recorder)
        return recorder.cpus[0]

    assert _wait_for(lambda: cpu_snapshot()[3] == STATUS.temp)
    freq, usage, power, _temp = cpu_snapshot()
    assert freq == STATUS.freq
    assert usage == STATUS.usage
    assert power == STATUS.power


def test_fan_state_follows_daemon_replies(daemon):
    name, _ = daemon({0: CPU_DESC, 1: FAN_DESC})
    service, _handle = Service.init(name)

    def fan_snapshot():
        recorder = Recorder()
        service.accept(1, recorder)
        return recorder.fans[0]

    _wait_for(lambda: fan_snapshot() == (FanSpeed(1200), FanSpeed(900)))
    cpu_speed, gpu_speed = fan_snapshot()
    assert cpu_speed == FanSpeed(1200)
    assert gpu_speed == FanSpeed(900)


def test_refresher_sends_status_requests(daemon):
    name, received = daemon({0: CPU_DESC, 1: FAN_DESC})
    Service.init(name)
    commands = set()
    deadline = time.monotonic() + 5
    while time.monotonic() < deadline and len(commands) < 3:
        try:
            commands.add(received.get(timeout=0.5).packet.command)
        except queue.Empty:
            pass
    assert commands == {
        MsgCommand.GET_COMPONENT_LIST,
        MsgCommand.GET_STATUS,
        MsgCommand.GET_FAN_SPEED,
    }


def test_accept_unknown_component_raises(daemon):
    name, _ = daemon({0: CPU_DESC})
    service, _handle = Service.init(name)
    with pytest.raises(ServiceError):
        service.accept(7, Recorder())


def test_deactivate_and_activate(daemon):
    name, _ = daemon({0: CPU_DESC})
    service, _handle = Service.init(name)
    service.deactivate_component(0)
    assert service.components_info[0].active is False
    service.activate_component(0)
    assert service.components_info[0].active is True


def test_unknown_component_activation_is_reported(daemon, capsys):
    name, _ = daemon({0: CPU_DESC})
    service, _handle = Service.init(name)
    service.deactivate_component(9)
    assert "Component not found for index: 9" in capsys.readouterr().err
    assert set(service.components_info) == {0}


def test_gpu_component_is_rejected(daemon):
    name, _ = daemon({0: Desc(Category.GPU, 0, "Test GPU")})
    with pytest.raises(ServiceError):
        Service.init(name)


def test_init_without_daemon_raises(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ServiceError):
        Service.init(f"cf-missing-{uuid.uuid4().hex[:12]}")


def test_component_info_starts_active():
    info = ComponentInfo(CPU_DESC)
    assert info.active is True
    assert info.desc == CPU_DESC