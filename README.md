# gamestream

Platform building blocks for a game streaming client. This package is a
library that you import. It has no command-line tool.

## Installation

```
pip install gamestream
pip install "gamestream[test]"   # adds pytest for the test suite
```

## Modules

- `gamestream.blocking_queue`: `LinkedBlockingQueue(size_bound)` is a bounded,
  thread-safe FIFO queue.
  - `offer` appends an item.
  - `wait` blocks until an item arrives.
  - `poll` and `peek` never block.
  - `flush` and `destroy` empty the queue and return the items it held.
  - `len(queue)` gives the number of items held.
  - `signal_shutdown` aborts all reads, even when items remain.
  - `signal_drain` refuses new items but lets readers take the items that remain.
  - `signal_user_wake` makes one `wait` return early.

  Each failure raises a subclass of `QueueError`: `QueueInterrupted`,
  `QueueBoundExceeded`, `QueueEmpty` or `QueueUserWake`.
- `gamestream.version`: `parse_version_quad("7.1.431")` returns the tuple
  `(7, 1, 431, 0)`. Components that are missing are zero.
- `gamestream.recorder`: `RecordingVideoRenderer` and `RecordingAudioRenderer` wrap
  your renderers and pass every call on to them.
  - The file path is the `context` argument of `setup` (video) or `init` (audio).
  - Each wrapper writes the data it sees to that file.
  - A decode unit must carry its data as an iterable of byte chunks in a `buffers` attribute.
  - `wrap_with_recorders(video, audio)` returns both wrappers.
- `gamestream.platform`: `PlatformThread` is a named thread. Interruption is
  cooperative: `interrupt` sets a flag, and `is_interrupted` reads that flag.
  - `create_thread(name, entry, context)` creates the thread and starts it.
  - `PlatformEvent` is a manual-reset event.
  - `sleep_ms` and `sleep_ms_interruptible` sleep for a number of milliseconds.
  - `get_microseconds` and `get_millis` give monotonic time.
  - `safe_copy(src, dest_size)` raises `ValueError` when the string, with its terminator, does not fit in `dest_size` UTF-8 bytes.
- `gamestream.crypto`: `CryptoContext` encrypts and decrypts with AES-128.
  - `Algorithm.AES_CBC` and `Algorithm.AES_GCM` select the mode.
  - `CipherFlag` holds `RESET_IV`, `FINISH` and `PAD_TO_BLOCK_SIZE`.
  - In GCM mode, `encrypt` returns the tag followed by the ciphertext. `decrypt` takes the tag as a separate argument.
  - In CBC mode, the chain continues from one call to the next until `RESET_IV` is given.
  - Failures raise `CryptoError`.
  - The module also has `pad_pkcs7`, `round_to_pkcs7_padded_len` and `generate_random_data`.
- `gamestream.netaddr`: address helpers.
  - `url_safe_address` puts IPv6 addresses in brackets.
  - `is_private_v4` and `is_private_network_address` check for private ranges.
  - `is_in_subnet_v6` checks IPv6 prefixes.
  - `is_nat64_synthesized_address` checks NAT64 synthesis. You can pass it the resolved `ipv4only.arpa` addresses, or let it look them up.
- `gamestream.sockets`: socket helpers.
  - `create_socket` and `set_socket_non_blocking` create sockets and set blocking mode.
  - `connect_tcp_socket` connects with a deadline and caps the MSS.
  - `bind_udp_socket` takes `QosType` and an optional receive buffer size.
  - `recv_udp_socket` returns `None` on timeout.
  - `is_socket_readable`, `send_mtu_safe`, `enable_no_delay`, `shutdown_tcp_socket`, `get_local_address_by_udp_connect` and `resolve_host_name` cover the remaining socket tasks.
  - Failures raise `OSError`.

## Example

```python
from gamestream.blocking_queue import LinkedBlockingQueue, QueueInterrupted
from gamestream.crypto import Algorithm, CryptoContext

queue = LinkedBlockingQueue(150)
queue.offer(b"input packet")
print(queue.wait())          # b"input packet"

queue.signal_drain()
try:
    queue.wait()
except QueueInterrupted:
    print("queue drained")

key = bytes(16)              # all-zero placeholder key for the example
iv = bytes(16)
with CryptoContext() as ctx:
    sealed = ctx.encrypt(Algorithm.AES_GCM, key, iv, b"hello", tag_length=16)
    tag, ciphertext = sealed[:16], sealed[16:]
```

## What this package does not do

This package provides only the building blocks. It does not include:

- a streaming session
- a control, input, video or audio stream
- a decoder
- a command-line client

You supply the renderers that the recorders wrap, and you drive the sockets and
queues from your own code.