import json

import pytest

from defendkit.metrics import Connection
from defendkit.report_arrays import (
    BadParameterError,
    BufferTooSmallError,
    ReportBuilderError,
    format_connections_array,
    format_ports_array,
    format_task_ids_array,
)


def _conn(remote_ip, local_port, remote_port):
    return Connection(local_ip=0, remote_ip=remote_ip, local_port=local_port, remote_port=remote_port)


def test_ports_array_documented_example():
    assert format_ports_array([44207, 53]) == '[{"port": 44207},{"port": 53}]'


def test_empty_arrays():
    assert format_ports_array([]) == "[]"
    assert format_task_ids_array([]) == "[]"
    assert format_connections_array([]) == "[]"


def test_task_ids_array():
    assert format_task_ids_array([1, 2, 3]) == "[1,2,3]"


def test_ports_round_trip():
    ports = [22, 80, 443, 8883]
    parsed = json.loads(format_ports_array(ports))
    assert [entry["port"] for entry in parsed] == ports


def test_task_ids_round_trip():
    ids = [7, 4294967295, 0, 12]
    assert json.loads(format_task_ids_array(ids)) == ids


def test_connections_documented_example():
    connections = [_conn(0x7F000001, 44207, 45148), _conn((24 << 24) | (16 << 16) | (237 << 8) | 194, 22, 63552)]
    parsed = json.loads(format_connections_array(connections))
    assert parsed == [
        {"local_port": 44207, "remote_addr": "127.0.0.1:45148"},
        {"local_port": 22, "remote_addr": "24.16.237.194:63552"},
    ]


@pytest.mark.parametrize(
    "formatter, items",
    [
        (format_ports_array, [1, 22, 65535]),
        (format_task_ids_array, [5, 6]),
        (format_ports_array, []),
        (format_connections_array, [_conn(0x0A000001, 1883, 50000)]),
    ],
)
def test_minimal_buffer_fits_and_one_less_fails(formatter, items):
    text = formatter(items)
    assert formatter(items, len(text) + 1) == text
    with pytest.raises(BufferTooSmallError):
        formatter(items, len(text))


@pytest.mark.parametrize("length", [0, 1])
def test_tiny_buffers_fail(length):
    with pytest.raises(BufferTooSmallError):
        format_ports_array([], length)


def test_negative_buffer_is_bad_parameter():
    with pytest.raises(BadParameterError):
        format_task_ids_array([1], -1)


def test_errors_share_base_class():
    with pytest.raises(ReportBuilderError):
        format_ports_array([80, 443], 5)


def test_large_buffer_gives_same_text_as_unbounded():
    ids = list(range(50))
    assert format_task_ids_array(ids, 10_000) == format_task_ids_array(ids)