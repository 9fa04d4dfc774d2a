import pytest

from motor_monitor.instrumentation import SimulatedTransport, TransportError
from motor_monitor.sensors import (
    AcquisitionAdapter,
    AcquisitionError,
    AcquisitionTimeout,
    ChannelMapping,
    ChannelReadError,
    DisconnectedError,
)
from motor_monitor.telemetry import calculate_cycles

CHANNELS = {
    "voltage": ChannelMapping(address=0),
    "current": ChannelMapping(address=1),
    "heat": ChannelMapping(address=2),
    "speed": ChannelMapping(address=3),
}


class DummyTransport:
    def __init__(self, registers, connected=True):
        self.registers = dict(registers)
        self.connected = connected
        self.reads = []
        self.errors = {}

    @property
    def is_connected(self) -> bool:
        return self.connected

    def connect(self) -> None:
        self.connected = True

    def read_registers(self, address: int, count: int = 1):
        self.reads.append(address)
        if address in self.errors:
            raise self.errors[address]
        return [self.registers[address]]

    def close(self) -> None:
        self.connected = False


def make_adapter(transport, clock=lambda: 1000.0, **kwargs):
    kwargs.setdefault("nominal_torque", 10.1)
    return AcquisitionAdapter(transport, CHANNELS, cycle_period=1.0, clock=clock, **kwargs)


def test_read_sample_converts_registers():
    transport = DummyTransport({0: 230, 1: 10, 2: 45, 3: 1500})
    sample = make_adapter(transport).read_sample()

    assert sample.timestamp == 1000.0
    assert sample.current_power == pytest.approx(2.3)
    assert sample.current_speed == 1500.0
    assert sample.current_heat == 45.0
    assert sample.current_torque == 10.1
    assert sample.current_cycles == calculate_cycles(10.1, 1.0)
    assert transport.reads == [0, 1, 2, 3]


def test_channel_scaling_offset_and_sign():
    mapping = ChannelMapping(address=5, scale=0.1, offset=-40.0)
    assert mapping.decode(650) == pytest.approx(25.0)
    assert mapping.encode(25.0) == 650

    signed = ChannelMapping(address=6, scale=0.5, signed=True)
    assert signed.decode(0xFFFE) == pytest.approx(-1.0)
    assert signed.decode(4) == pytest.approx(2.0)
    assert signed.encode(-1.0) == 0xFFFE

    with pytest.raises(ValueError):
        ChannelMapping(address=1, scale=0.0)
    with pytest.raises(ValueError):
        ChannelMapping(address=-1)


def test_torque_channel_takes_precedence():
    channels = dict(CHANNELS, torque=ChannelMapping(address=4, scale=0.1))
    transport = DummyTransport({0: 230, 1: 10, 2: 45, 3: 1500, 4: 120})
    adapter = AcquisitionAdapter(transport, channels, cycle_period=2.0, clock=lambda: 5.0)
    sample = adapter.read_sample()
    assert sample.current_torque == pytest.approx(12.0)
    assert sample.current_cycles == pytest.approx(24.0)


def test_failed_channel_fails_whole_sample():
    transport = DummyTransport({0: 230, 1: 10, 2: 45, 3: 1500})
    transport.errors[2] = TransportError("CRC mismatch")
    adapter = make_adapter(transport)

    with pytest.raises(ChannelReadError) as info:
        adapter.read_sample()
    assert info.value.channel == "heat"
    assert isinstance(info.value.cause, TransportError)
    assert transport.reads == [0, 1, 2]


def test_timeout_is_reported_per_channel():
    transport = SimulatedTransport({0: 230, 1: 10, 2: 45, 3: 1500})
    transport.timing_out.add(1)
    with pytest.raises(AcquisitionTimeout) as info:
        make_adapter(transport).read_sample()
    assert info.value.channel == "current"


def test_disconnected_transport_fails_fast():
    transport = DummyTransport({0: 230, 1: 10, 2: 45, 3: 1500}, connected=False)
    with pytest.raises(DisconnectedError):
        make_adapter(transport).read_sample()
    assert transport.reads == []


def test_timestamp_is_taken_after_reads_and_never_decreases():
    transport = DummyTransport({0: 230, 1: 10, 2: 45, 3: 1500})
    times = iter([1000.0, 999.5, 1001.0])
    adapter = make_adapter(transport, clock=lambda: next(times))

    stamps = [adapter.read_sample().timestamp for _ in range(3)]
    assert stamps == [1000.0, 1000.0, 1001.0]


def test_clock_not_consulted_when_read_fails():
    transport = DummyTransport({0: 230, 1: 10, 2: 45, 3: 1500})
    transport.errors[3] = TransportError("device not ready")
    calls = []
    adapter = make_adapter(transport, clock=lambda: calls.append(1) or 1.0)
    with pytest.raises(AcquisitionError):
        adapter.read_sample()
    assert calls == []


def test_adapter_validates_configuration():
    transport = DummyTransport({})
    with pytest.raises(ValueError, match="speed"):
        AcquisitionAdapter(transport, {k: v for k, v in CHANNELS.items() if k != "speed"}, 1.0, nominal_torque=1.0)
    with pytest.raises(ValueError, match="torque"):
        AcquisitionAdapter(transport, CHANNELS, 1.0)
    with pytest.raises(ValueError):
        AcquisitionAdapter(transport, CHANNELS, 0.0, nominal_torque=1.0)
    with pytest.raises(ValueError):
        AcquisitionAdapter(transport, CHANNELS, 1.0, nominal_torque=1.0, cycle_model="nope")
    with pytest.raises(ValueError, match="nominal_torque"):
        AcquisitionAdapter(transport, CHANNELS, 1.0, nominal_torque=float("nan"))
    with pytest.raises(ValueError, match="nominal_torque"):
        AcquisitionAdapter(transport, CHANNELS, 1.0, nominal_torque="ten")


def test_reconnect_reports_outcome():
    transport = SimulatedTransport({0: 230, 1: 10, 2: 45, 3: 1500}, connected=False)
    adapter = make_adapter(transport)
    transport.refuse_connect = True
    assert adapter.reconnect() is False
    transport.refuse_connect = False
    assert adapter.reconnect() is True
    assert adapter.read_sample().current_power == pytest.approx(2.3)


def test_two_register_channel_is_read_high_word_first():
    channels = dict(CHANNELS, speed=ChannelMapping(address=3, scale=0.01, count=2))
    transport = SimulatedTransport({0: 230, 1: 10, 2: 45, 3: 0x0001, 4: 0x86A0})
    adapter = AcquisitionAdapter(transport, channels, cycle_period=1.0, nominal_torque=10.1)

    assert adapter.read_sample().current_speed == pytest.approx(1000.0)


def test_wide_signed_channel_round_trips_words():
    mapping = ChannelMapping(address=0, scale=1.0, signed=True, count=2)
    assert mapping.decode(0xFFFFFFFF) == pytest.approx(-1.0)
    assert mapping.split(mapping.encode(-2.0)) == [0xFFFF, 0xFFFE]
    assert mapping.combine([0xFFFF, 0xFFFE]) == 0xFFFFFFFE
    assert mapping.encode(1e12) == 0x7FFFFFFF

    with pytest.raises(ValueError):
        ChannelMapping(address=0, count=3)
    assert ChannelMapping.from_dict({"address": 7, "count": 2}).count == 2


def test_short_response_fails_the_channel():
    channels = dict(CHANNELS, speed=ChannelMapping(address=3, count=2))
    transport = DummyTransport({0: 230, 1: 10, 2: 45, 3: 1500})
    adapter = AcquisitionAdapter(transport, channels, cycle_period=1.0, nominal_torque=10.1)

    with pytest.raises(ChannelReadError, match="short response") as info:
        adapter.read_sample()
    assert info.value.channel == "speed"
