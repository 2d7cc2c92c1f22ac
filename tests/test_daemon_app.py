import uuid

import pytest

from clevofan.daemon_app import CPU_ID, FAN_ID, build_service, main
from clevofan.daemon_components import Component, Fan
from clevofan.fields import Category, ComponentList, Desc, FanIndex, TargetFanSpeed
from clevofan.proto import MsgBody, MsgCommand, MsgMode, MsgPacket, recv_msg, send_msg
from clevofan.stream import SocketStream


class FakeEc:
    def __init__(self):
        self.writes = []

    def read_byte(self, addr):
        return 0

    def cmd_write(self, cmd, addr, byte):
        self.writes.append((cmd, addr, byte))


class FakeCpu(Component):
    def get_desc(self):
        return Desc(Category.CPU, 0, "GenuineTest:Test CPU")


def request(command, id_num, payload=()):
    return MsgBody(MsgPacket(MsgMode.REQUEST, None, 0, id_num, command), list(payload))


def test_build_service_registers_fixed_ids():
    cpu = FakeCpu()
    fan = Fan(ec=FakeEc())
    service = build_service("unused", cpu, fan)
    assert service.components == {CPU_ID: cpu, FAN_ID: fan}
    assert (CPU_ID, FAN_ID) == (0, 1)
    assert service.config.socket_name == "unused"


def test_built_service_controls_fan_over_socket():
    name = f"clevofan-app-{uuid.uuid4().hex[:12]}.sock"
    ec = FakeEc()
    service = build_service(name, FakeCpu(), Fan(ec=ec))
    service.spawn_msg_handler()
    with SocketStream.connect(name) as client:
        send_msg(client, request(MsgCommand.GET_COMPONENT_LIST, 0))
        listing = ComponentList.deserialize(recv_msg(client).payload[0])
        assert listing.components[FAN_ID].category is Category.FAN
        assert listing.components[CPU_ID].category is Category.CPU

        payload = [FanIndex.CPU.serialize(), TargetFanSpeed(100).serialize()]
        send_msg(client, request(MsgCommand.SET_FAN_SPEED, FAN_ID, payload))
        reply = recv_msg(client)
        assert reply.packet.error is None
    assert ec.writes == [(0x99, int(Category.CPU), 255)]


def test_main_help_exits_cleanly(capsys):
    with pytest.raises(SystemExit) as info:
        main(["--help"])
    assert info.value.code == 0
    assert "--socket-name" in capsys.readouterr().out


def test_main_rejects_unknown_option():
    with pytest.raises(SystemExit) as info:
        main(["--no-such-option"])
    assert info.value.code == 2