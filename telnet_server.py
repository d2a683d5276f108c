"""
Telnet server for Geo Mover.
Every connection runs its own simulation through the shared terminal handler.
"""

import asyncio
import logging
import threading

import telnetlib3

from console import keyboard_monitor
from terminal_handler import handle_terminal_session, config

logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

_server = None


async def shell(reader, writer):
    """Telnet shell handler that uses the shared terminal session handler"""
    peername = writer.get_extra_info('peername')
    await handle_terminal_session(reader, writer, peername, protocol='telnet')


async def main(port=8023, shutdown_event=None, monitor_keyboard=True):
    global _server
    print(f"Starting telnet server on port {port}...")
    print(f"Location source: {config['location'].get('source')}, "
          f"frame rate: {config['display'].get('frame_rate')} fps")

    if shutdown_event is None:
        shutdown_event = asyncio.Event()

    if monitor_keyboard:
        loop = asyncio.get_running_loop()
        keyboard_thread = threading.Thread(target=keyboard_monitor, args=(loop, shutdown_event), daemon=True)
        keyboard_thread.start()

    # timeout=None disables the idle connection timeout
    server = await telnetlib3.create_server(port=port, shell=shell, timeout=None)
    _server = server
    for sock in server.sockets:
        print(f"Listening on interface {sock.getsockname()[0]}:{sock.getsockname()[1]}")

    try:
        await shutdown_event.wait()
    except asyncio.CancelledError:
        pass
    finally:
        print("\nShutting down telnet server...")
        server.close()
        await server.wait_closed()
        _server = None
        print("Telnet server shutdown complete.")


if __name__ == '__main__':
    try:
        asyncio.run(main(port=config['server'].get('port', 8023)))
    except KeyboardInterrupt:
        print("Server shut down.")
