import pytest

from motor_monitor.telemetry import MotorData, MotorDataSeries, MotorSpecs


def make_sample(timestamp: float, power: float = 2.3) -> MotorData:
    return MotorData(
        timestamp=timestamp,
        current_power=power,
        current_torque=10.1,
        current_speed=1500.0,
        current_heat=45.0,
        current_cycles=10.1,
    )


def test_motor_specs_validation():
    specs = MotorSpecs(2.4, 10.1, 1450.0, 25.9, 4800.0)
    assert specs.peak_torque == 25.9

    with pytest.raises(ValueError):
        MotorSpecs(2.4, 10.1, 1450.0, 5.0, 4800.0)  # peak below rated torque
    with pytest.raises(ValueError):
        MotorSpecs(2.4, 10.1, 1450.0, 25.9, 1000.0)  # max below rated speed
    with pytest.raises(ValueError):
        MotorSpecs(0.0, 10.1, 1450.0, 25.9, 4800.0)
    with pytest.raises(ValueError):
        MotorSpecs(float("inf"), 10.1, 1450.0, 25.9, 4800.0)


def test_motor_specs_from_dict_and_limits():
    specs = MotorSpecs.from_dict(
        {
            "rated_power_kw": 2.4,
            "rated_torque_nm": 10.1,
            "rated_speed_rpm": 1450,
            "peak_torque_nm": 25.9,
            "max_speed_rpm": 4800,
        }
    )
    assert specs.rated_speed == 1450.0
    assert specs.limit_violations(make_sample(1.0)) == []
    assert specs.limit_violations(make_sample(1.0, power=-3.0)) == ["current_power"]

    with pytest.raises(ValueError, match="rated_power_kw"):
        MotorSpecs.from_dict({})


def test_motor_data_rejects_non_finite_values():
    with pytest.raises(ValueError):
        make_sample(1.0, power=float("nan"))
    with pytest.raises(ValueError):
        make_sample(float("inf"))


def test_motor_data_is_immutable_and_round_trips_rows():
    sample = make_sample(1000.0)
    with pytest.raises(AttributeError):
        sample.current_power = 1.0  # type: ignore[misc]
    row = sample.as_row()
    assert row["timestamp"] == 1000.0
    assert MotorData.from_row(row) == sample


def test_series_keeps_last_points_fifo():
    series = MotorDataSeries(max_points=3)
    for t in range(1, 6):
        series.append(make_sample(float(t)))

    assert len(series) == 3
    assert [rec.timestamp for rec in series] == [3.0, 4.0, 5.0]
    assert series.points("current_power") == [(3.0, 2.3), (4.0, 2.3), (5.0, 2.3)]
    assert series.points("current_speed")[-1] == (5.0, 1500.0)


def test_series_rejects_unknown_names_and_bad_capacity():
    with pytest.raises(ValueError):
        MotorDataSeries(max_points=0)
    series = MotorDataSeries(max_points=2)
    assert series.points("current_heat") == []
    with pytest.raises(KeyError):
        series.points("voltage")
