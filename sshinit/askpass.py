"""Askpass helper run by OpenSSH.

    python -m sshinit.askpass [prompt]     print the login secret
    python -m sshinit.askpass --connected  report an established connection

Talks to the launch's broker over the socket named by
SSHINIT_ASKPASS_SOCKET. Prints nothing and exits non-zero when the broker
refuses, so OpenSSH falls back to failing the authentication attempt.
"""

import json
import os
import socket
import sys

SOCKET_ENV = "SSHINIT_ASKPASS_SOCKET"
TOKEN_ENV = "SSHINIT_ASKPASS_TOKEN"
CONNECT_TIMEOUT = 5.0


def _read_line(sock: socket.socket) -> bytes:
    data = bytearray()
    while not data.endswith(b"\n"):
        chunk = sock.recv(4096)
        if not chunk:
            break
        data.extend(chunk)
    return bytes(data)


def _request(socket_path: str, token: str, op: str, prompt: str = "") -> bytes | None:
    """Send one request to the broker.

    Returns:
        Reply payload without the status byte, or None if refused
    """
    message = json.dumps({"token": token, "op": op, "prompt": prompt}).encode() + b"\n"
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.settimeout(CONNECT_TIMEOUT)
        sock.connect(socket_path)
        sock.sendall(message)
        reply = _read_line(sock)

    if not reply.startswith(b"1"):
        return None
    return reply[1:].rstrip(b"\n")


def request_secret(socket_path: str, token: str, prompt: str = "") -> bytes | None:
    """Ask the broker for the login secret."""
    return _request(socket_path, token, "secret", prompt)


def notify_connected(socket_path: str, token: str) -> bool:
    """Tell the broker the SSH connection is established."""
    return _request(socket_path, token, "connected") is not None


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    socket_path = os.environ.get(SOCKET_ENV)
    token = os.environ.get(TOKEN_ENV)

    if args[:1] == ["--connected"]:
        # LocalCommand failures never abort the session
        if socket_path and token:
            try:
                notify_connected(socket_path, token)
            except OSError:
                pass
        return 0

    if not socket_path or not token:
        print("sshinit.askpass: no broker for this session", file=sys.stderr)
        return 1

    try:
        secret = request_secret(socket_path, token, " ".join(args))
    except OSError as e:
        print(f"sshinit.askpass: broker unavailable ({type(e).__name__})", file=sys.stderr)
        return 1

    if secret is None:
        return 1
    sys.stdout.buffer.write(secret + b"\n")
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
