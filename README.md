# cshell

Tools for working with CSP (CubeSat Space Protocol) networks from a ground
station: a ZeroMQ publish/subscribe proxy, pure-Python NaCl primitives,
discovery of firmware images for flash slots, stdbuf console logging,
Victoria Metrics export and VTS visualisation streaming.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## The ZMQ proxy

`cshell-zmqproxy` binds an XSUB socket and an XPUB socket and forwards every
message between them, so that any number of CSP nodes can share one hub.

```
cshell-zmqproxy
cshell-zmqproxy -s tcp://0.0.0.0:6000 -p tcp://0.0.0.0:7000
cshell-zmqproxy -d 3 -f capture.log
```

Options:

| Option        | Meaning                                                       |
|---------------|---------------------------------------------------------------|
| `-d LEVEL`    | 1 = print connection events, 2 = print packets, 3 = both      |
| `-v VERSION`  | CSP header version used to decode captured packets (default 2)|
| `-s SUB_STR`  | subscriber endpoint (default `tcp://0.0.0.0:6000`)            |
| `-p PUB_STR`  | publisher endpoint (default `tcp://0.0.0.0:7000`)             |
| `-f LOGFILE`  | append captured frames to this file (with `-d 2`)             |
| `-a`          | enable CURVE authentication and encryption                    |
| `-g`          | generate a CURVE key pair, print the secret half and exit     |

With `-a` the server's z85 secret is read from the first line of
`zmqauth.cfg` in the home directory (`load_secret_key`).

With `-d 2` a capture thread subscribes to the publisher side and prints the
source, destination, ports, priority, flags and size of each CSP packet;
with `-f` every frame is also appended to the log file after a `--------`
delimiter. With `-d 1` socket monitor events (connections, handshakes,
disconnects) are printed, as rendered by `describe_event`.

The same can be driven from Python with `cshell.zmqproxy.parse_args`
(returning a `ProxyOptions`), `cshell.zmqproxy.run_proxy`,
`cshell.zmqproxy.run_capture` and `cshell.zmqproxy.main`.

## NaCl primitives

`cshell.naclcore` is a small, dependency-free implementation of the NaCl
constructions:

* `cshell.naclcore.stream` — Salsa20, HSalsa20 and XSalsa20 streams
  (`core_salsa20`, `core_hsalsa20`, `stream_salsa20`, `stream_salsa20_xor`,
  `stream`, `stream_xor`).
* `cshell.naclcore.onetimeauth` — Poly1305 (`onetimeauth`,
  `onetimeauth_verify`) and constant-time comparison (`verify_16`,
  `verify_32`).
* `cshell.naclcore.box` — XSalsa20-Poly1305 secret boxes and
  Curve25519 public-key boxes (`secretbox`, `secretbox_open`, `box`,
  `box_open`, `box_beforenm`, `box_afternm`, `box_open_afternm`,
  `box_keypair`, `scalarmult`, `scalarmult_base`). A ciphertext that is too
  short or fails authentication raises `CryptoError`.
* `cshell.naclcore.sign` — SHA-512 (`sha512`, `hashblocks`) and Ed25519
  signatures (`sign_keypair`, `sign`, `sign_open`). A forged or damaged
  message raises `BadSignatureError`.

```python
from cshell.naclcore.sign import sign_keypair, sign, sign_open

keys = sign_keypair()
signed = sign(b"hello", keys[1])
assert sign_open(signed, keys[0]) == b"hello"
```

Messages are passed without any zero padding: `secretbox` and `box` return
the 16-byte Poly1305 tag followed by the encrypted bytes, and
`secretbox_open` and `box_open` take that form back and return the plain
message.

## Firmware images

`cshell.binimage` finds `.bin` files suited to a flash slot's memory area:

```python
from cshell.binimage import find_binaries, format_candidate, vmem_name

print(vmem_name(1))  # "fl1"
for index, (path, ident) in enumerate(find_binaries(".", 0x00400000, 0x0047FFFF, 10)):
    print(format_candidate(index, path, ident))
```

An image qualifies when it fits the area and either its trailing IDENT block
gives a start-of-text address inside the area, or an entry point in its
vector table (offset 4 or 0x2C4) does. `inspect_binary` checks one file and
`read_image` reads one; `BinaryIdent` carries the hostname, model, version
string and start-of-text address from the IDENT block. At most ten images
are returned. Directory traversal is done by `cshell.walkdir.walk`, which
skips hidden entries and anything that is neither a regular file nor a
directory.

## stdbuf console

`cshell.stdbuf` holds the pieces of a remote stdout monitor:
`choose_log_name` picks a log file name (a name starting with `?` gets a
dated, numbered name, `csh` when no prefix is given), `StdbufLog` appends
received bytes to it with control characters made visible
(`format_log_bytes`), and `next_window` computes which part of the remote
ring buffer to read next, at most 200 bytes at a time.

## Victoria Metrics

`cshell.victoria_metrics` buffers parameter values as Prometheus text lines
(`format_param_lines`, `MetricBuffer`) and pushes them once per interval
(one second by default) to a Victoria Metrics server with
`VictoriaMetricsPusher`, configured by a `PushConfig` (server, port, SSL,
certificate checking, optional basic authentication). Port 8428 is used by
default, 8427 when a username is given; a username without a password is
rejected with `ValueError`.

## VTS

`cshell.vts.VtsClient.connect` opens a TCP connection to a VTS visualisation
server (default `127.0.0.1:8888`); `add` streams attitude quaternions
(parameter 305) and orbit positions (parameter 357, converted to km) from
the chosen ADCS node as `TIME`/`DATA` lines in CNES Julian days. `to_jd`
converts Unix seconds to a Julian date.

## What this package does not do

cshell has no CSP network stack of its own. It does not talk to nodes: it
does not upload images to flash, switch boot slots, read a node's stdbuf
memory or sniff parameters. The modules above supply the file handling,
formatting and transport pieces around those tasks, and the ZMQ proxy is the
only command it installs.