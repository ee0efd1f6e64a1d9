"""Example: drive a sending relay against a UDP echo server."""

import asyncio
import base64
import os
import sys
from pathlib import Path

# Add parent directory to path for imports
SRC = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(SRC))

from udprelay.transports.udp.async_socket import AsyncUDPSocket


async def echo_server(sock: AsyncUDPSocket):
    """Echo every datagram back to its sender."""
    while True:
        data, addr = await sock.receive_from()
        await sock.send_to(data, addr)


async def main():
    async with AsyncUDPSocket("127.0.0.1", 0) as server:
        print(f"UDP echo server on 127.0.0.1:{server.port}")
        echo = asyncio.create_task(echo_server(server))

        relay = await asyncio.create_subprocess_exec(
            sys.executable, "-m", "udprelay", "send", f"127.0.0.1:{server.port}",
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            env={**os.environ, "PYTHONPATH": str(SRC)},
        )

        for session_id, text in [(0, b"Hello"), (1, b"from session one"), (0, b"again")]:
            frame = f"{session_id}:{base64.b64encode(text).decode()}\n"
            print(f"Sending: {frame.strip()}")
            relay.stdin.write(frame.encode())
            await relay.stdin.drain()

            reply = (await relay.stdout.readline()).decode().strip()
            reply_id, payload = reply.split(":")
            print(f"Received on session {reply_id}: {base64.b64decode(payload).decode()}")

        relay.stdin.close()
        print(f"Relay exited with {await relay.wait()} after input closed")
        echo.cancel()


if __name__ == "__main__":
    asyncio.run(main())
