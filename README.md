# defendkit

Tools for a device that reports its network state to a security-monitoring
service:

- **Metrics collection** (`defendkit.metrics`): turn snapshots from a
  netstat-style source into byte and packet counters, open TCP and UDP
  ports, and established TCP connections.
- **Report building** (`defendkit.report`, `defendkit.report_arrays`): write
  those metrics, together with two custom metrics (stack high-water mark and
  task ids), into the compact JSON report layout the service expects. The
  size of the report can be capped.
- **Signature verification** (`defendkit.crypto`): hash data incrementally
  with SHA-1 or SHA-256, then check an RSA (PKCS#1 v1.5) or ECDSA signature
  against the public key in a PEM or DER X.509 certificate.
- **Platform helpers** (`defendkit.platform`): zeroed allocation, socket
  send and receive, a mutex that also works as a context manager, and an
  entropy poll.

## Installation

```
pip install defendkit
```

Requires Python 3.10 or later. `cryptography` is installed as a dependency.

## Collecting metrics

`MetricsCollector(source, local_ip=0)` takes a `source`, a callable with no
arguments that returns a `NetstatSnapshot`. `local_ip` is the device's own
address as a 32-bit integer, or a callable that returns one. The callable is
called each time connections are listed. Every query calls `source` again.

```python
from defendkit.metrics import (
    MetricsCollectionError,
    MetricsCollector,
    NetstatSnapshot,
    TcpSocketInfo,
)

def source():
    return NetstatSnapshot(
        bytes_received=1200,
        packets_received=10,
        bytes_sent=800,
        packets_sent=8,
        tcp_ports=(80, 443),
        udp_ports=(53,),
        tcp_sockets=(TcpSocketInfo(local_port=443, remote_ip=0x0A000002, remote_port=50000),),
    )

collector = MetricsCollector(source, local_ip=0x0A000001)

try:
    stats = collector.network_stats()                  # NetworkStats
    tcp_ports = collector.open_tcp_ports(limit=16)     # at most 16 ports
    udp_ports = collector.open_udp_ports()             # every open port
    connections = collector.established_connections(limit=8)  # list of Connection
except MetricsCollectionError:
    ...  # the source raised an exception
```

If a limit is smaller than the number available, the list is cut to that
length and a warning is logged. A negative limit raises `ValueError`.
Counters in `NetworkStats` are reduced to 32 bits.

## Building a report

```python
from defendkit.report import ReportMetrics, generate_json_report
from defendkit.report_arrays import BufferTooSmallError

metrics = ReportMetrics(
    network_stats=stats,
    tcp_ports=tcp_ports,
    udp_ports=udp_ports,
    connections=connections,
    stack_high_water_mark=512,
    task_ids=[1, 2, 3],
)

try:
    report = generate_json_report(metrics, 1, 0, report_id=42, buffer_length=2048)
except BufferTooSmallError:
    ...  # the report needs a larger buffer
```

The report has a `header` holding the report id and version (`"1.0"`), and a
`metrics` section with `listening_tcp_ports`, `listening_udp_ports`,
`network_stats` and `tcp_connections`. It also has a `custom_metrics` section
holding `stack_high_water_mark` and `task_numbers`. Remote addresses are
written as `"a.b.c.d:port"`.

`buffer_length` reserves one character for a terminating NUL, as a fixed-size
buffer would. The report must therefore be shorter than `buffer_length`.
`None` (the default) means there is no limit. A report that does not fit
raises `BufferTooSmallError`. Missing metrics or a zero or negative
`buffer_length` raise `BadParameterError`. Both are subclasses of
`ReportBuilderError`, and `BadParameterError` is also a `ValueError`.

The helpers in `defendkit.report_arrays` (`format_ports_array`,
`format_connections_array`, `format_task_ids_array`) each write one JSON
array and follow the same size rules.

## Verifying a signature

```python
from defendkit.crypto import AsymmetricAlgorithm, HashAlgorithm, SignatureVerifier

verifier = SignatureVerifier(AsymmetricAlgorithm.ECDSA, HashAlgorithm.SHA256)
verifier.update(chunk_one)
verifier.update(chunk_two)
ok = verifier.verify(signer_certificate_pem, signature)   # True or False
```

`verify` returns `False` in these cases: the certificate or signature is
missing or empty, the certificate cannot be parsed, the key type is not
supported, or the signature does not match. After `verify` the verifier is
finished, and further calls raise `RuntimeError`. Any hash value other than
SHA-1 is treated as SHA-256.

If you already have a digest, call
`verify_signature(signer_certificate, hash_algorithm, digest, signature)`.

## Platform helpers

```python
from defendkit.platform import PlatformMutex, entropy_poll, platform_calloc

buf = platform_calloc(4, 16)      # bytearray of 64 zero bytes; None for a zero or oversized total
noise = entropy_poll(32)          # 32 bytes from os.urandom

mutex = PlatformMutex()
with mutex:                       # or mutex.lock() / mutex.unlock()
    ...
```

`platform_send(sock, data)` and `platform_recv(sock, length)` call `send` and
`recv` on any object that provides them. `hardware_poll` uses the same random
source as `entropy_poll`. If that source fails, both raise
`EntropySourceError`.

## What it does not do

- It does not read the operating system's network tables. You supply the
  netstat snapshots yourself.
- It does not send reports anywhere. You get the JSON text and deliver it
  over your own connection.
- It has no command-line program.

## Running the tests

```
pip install "defendkit[test]"
pytest
```