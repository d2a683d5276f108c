"""
SSH server implementation for Geo Mover.
Provides anonymous SSH access equivalent to the telnet server.
"""

import asyncio
import logging
import threading

import asyncssh

from console import keyboard_monitor
from terminal_handler import handle_terminal_session, config

logging.basicConfig(
    level=logging.WARNING,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

_server = None


class GeoMoverSSHServer(asyncssh.SSHServer):
    """SSH server accepting any credentials"""

    def connection_made(self, conn):
        print(f'SSH connection received from {conn.get_extra_info("peername")}')

    def connection_lost(self, exc):
        if exc:
            print(f'SSH connection error: {exc}')
        else:
            print('SSH connection closed')

    def begin_auth(self, username):
        # No authentication required
        return False

    def password_auth_supported(self):
        return True

    def validate_password(self, username, password):
        return True


class SSHWriter:
    """Adapts an SSH process stdout to the writer interface the terminal handler expects"""

    def __init__(self, writer, process):
        self._writer = writer
        self._process = process

    def write(self, data):
        if isinstance(data, bytes):
            data = data.decode('utf-8')
        self._writer.write(data)

    async def drain(self):
        await self._writer.drain()

    def is_closing(self):
        return self._writer.is_closing()

    def close(self):
        self._writer.close()

    def get_terminal_size(self):
        """(columns, rows) reported by the client, or (None, None)"""
        term_size = self._process.get_terminal_size()
        if term_size and term_size[0] and term_size[1]:
            return term_size[0], term_size[1]
        return None, None


async def handle_ssh_client(process):
    """Handle SSH client connection"""
    try:
        conn = process.get_extra_info('connection')
        peername = conn.get_extra_info('peername')

        # Character-at-a-time input without echo
        process.channel.set_echo(False)
        process.channel.set_line_mode(False)

        await handle_terminal_session(process.stdin, SSHWriter(process.stdout, process),
                                      peername, protocol='ssh')
    except (asyncssh.Error, OSError) as e:
        print(f'Error handling SSH client: {e}')
    finally:
        process.exit(0)


async def main(port=8024, shutdown_event=None, monitor_keyboard=True):
    """Start the SSH server and run until shutdown_event is set"""
    global _server
    print(f"Starting SSH server on port {port}...")
    print("SSH server configured for anonymous access - any username/password will work")

    if shutdown_event is None:
        shutdown_event = asyncio.Event()

    if monitor_keyboard:
        loop = asyncio.get_running_loop()
        keyboard_thread = threading.Thread(target=keyboard_monitor, args=(loop, shutdown_event), daemon=True)
        keyboard_thread.start()

    # Temporary host key for this run
    host_key = asyncssh.generate_private_key('ssh-rsa')

    _server = await asyncssh.create_server(
        GeoMoverSSHServer,
        '',  # Listen on all interfaces
        port,
        server_host_keys=[host_key],
        process_factory=handle_ssh_client,
        encoding='utf-8',
        server_version='GeoMover-SSH-1.0'
    )

    print(f"SSH server listening on port {port}")
    print(f"Connect using: ssh -p {port} guest@localhost")

    try:
        await shutdown_event.wait()
    except asyncio.CancelledError:
        pass
    finally:
        print("\nShutting down SSH server...")
        _server.close()
        await _server.wait_closed()
        _server = None
        print("SSH server shutdown complete.")


if __name__ == '__main__':
    try:
        asyncio.run(main(port=config['server'].get('ssh_port', 8024)))
    except KeyboardInterrupt:
        print("SSH server shut down.")
