import queue

import pytest

from clevofan.client_components import ComponentError, Cpu, Fan, Visitor
from clevofan.fields import (
    CpuStatus,
    FanIndex,
    FanSpeed,
    Freq,
    Power,
    TargetFanSpeed,
    TargetFreq,
    Temp,
    Usage,
)
from clevofan.proto import MsgCommand, MsgMode


class RecordingVisitor(Visitor):
    def __init__(self):
        self.seen = []

    def visit_cpu(self, cpu):
        self.seen.append(("cpu", cpu))

    def visit_fan(self, fan):
        self.seen.append(("fan", fan))


@pytest.fixture
def sender():
    return queue.Queue()


def test_cpu_refresh_sends_status_request(sender):
    Cpu(3, sender).refresh_status()
    body = sender.get_nowait()
    assert body.packet.mode is MsgMode.REQUEST
    assert body.packet.command is MsgCommand.GET_STATUS
    assert body.packet.id_num == 3
    assert body.payload == []
    assert body.packet.payload_length == []


def test_cpu_set_freq_sends_target(sender):
    target = TargetFreq(800, 4200)
    Cpu(0, sender).set_freq(target)
    body = sender.get_nowait()
    assert body.packet.command is MsgCommand.SET_FREQ
    assert TargetFreq.deserialize(body.payload[0]) == target
    assert body.packet.payload_length == [len(body.payload[0])]


def test_cpu_update_from_status_reply(sender):
    cpu = Cpu(0, sender)
    status = CpuStatus(Freq([3000, 3100]), Usage([0.5, 1.0]), Power(15000), Temp(62000))
    cpu.update_from_reply(MsgCommand.GET_STATUS, [status.serialize()])
    assert cpu.freq == Freq([3000, 3100])
    assert cpu.usage == Usage([0.5, 1.0])
    assert cpu.power == Power(15000)
    assert cpu.temp == Temp(62000)


def test_cpu_ignores_other_commands(sender):
    cpu = Cpu(0, sender)
    cpu.update_from_reply(MsgCommand.SET_FREQ, [])
    assert cpu.temp == Temp()


def test_cpu_wrong_payload_count(sender):
    with pytest.raises(ComponentError) as info:
        Cpu(0, sender).update_from_reply(MsgCommand.GET_STATUS, [])
    assert info.value.kind == "bad_reply"


def test_cpu_garbage_payload_is_field_error(sender):
    with pytest.raises(ComponentError) as info:
        Cpu(0, sender).update_from_reply(MsgCommand.GET_STATUS, [b"\x05"])
    assert info.value.kind == "field"


def test_fan_refresh_requests_all(sender):
    Fan(1, sender).refresh_status()
    body = sender.get_nowait()
    assert body.packet.command is MsgCommand.GET_FAN_SPEED
    assert body.packet.id_num == 1
    assert FanIndex.deserialize(body.payload[0]) is FanIndex.ALL


def test_fan_set_speed_payload(sender):
    Fan(1, sender).set_fan_speed(FanIndex.CPU, TargetFanSpeed(40))
    body = sender.get_nowait()
    assert body.packet.command is MsgCommand.SET_FAN_SPEED
    assert FanIndex.deserialize(body.payload[0]) is FanIndex.CPU
    assert TargetFanSpeed.deserialize(body.payload[1]) == TargetFanSpeed(40)


def test_fan_update_all(sender):
    fan = Fan(1, sender)
    payload = [FanIndex.ALL.serialize(), FanSpeed(2100).serialize(), FanSpeed(1900).serialize()]
    fan.update_from_reply(MsgCommand.GET_FAN_SPEED, payload)
    assert fan.cpu_fan_speed == FanSpeed(2100)
    assert fan.gpu_fan_speed == FanSpeed(1900)


def test_fan_update_gpu_only(sender):
    fan = Fan(1, sender)
    payload = [FanIndex.GPU.serialize(), FanSpeed(1800).serialize()]
    fan.update_from_reply(MsgCommand.GET_FAN_SPEED, payload)
    assert fan.gpu_fan_speed == FanSpeed(1800)
    assert fan.cpu_fan_speed == FanSpeed()


def test_fan_update_missing_speed(sender):
    fan = Fan(1, sender)
    with pytest.raises(ComponentError) as info:
        fan.update_from_reply(MsgCommand.GET_FAN_SPEED, [FanIndex.ALL.serialize()])
    assert info.value.kind == "bad_reply"


def test_accept_dispatches_by_type(sender):
    cpu, fan = Cpu(0, sender), Fan(1, sender)
    visitor = RecordingVisitor()
    cpu.accept(visitor)
    fan.accept(visitor)
    assert visitor.seen == [("cpu", cpu), ("fan", fan)]