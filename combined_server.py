"""
Combined server script that runs both telnet and SSH servers for Geo Mover.
Clients can connect via either protocol.
"""

import asyncio
import threading

from console import keyboard_monitor
from terminal_handler import config
from telnet_server import main as telnet_main
from ssh_server import main as ssh_main


async def run_combined_servers():
    """Run both servers until the console asks for shutdown"""
    telnet_port = config['server'].get('port', 8023)
    ssh_port = config['server'].get('ssh_port', 8024)

    print("Starting Geo Mover servers...")
    print(f"  Telnet: telnet localhost {telnet_port}")
    print(f"  SSH:    ssh -p {ssh_port} guest@localhost")

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    keyboard_thread = threading.Thread(target=keyboard_monitor, args=(loop, shutdown_event), daemon=True)
    keyboard_thread.start()

    await asyncio.gather(
        telnet_main(port=telnet_port, shutdown_event=shutdown_event, monitor_keyboard=False),
        ssh_main(port=ssh_port, shutdown_event=shutdown_event, monitor_keyboard=False),
    )
    print("All servers shut down.")


if __name__ == '__main__':
    try:
        asyncio.run(run_combined_servers())
    except KeyboardInterrupt:
        print("Servers shut down.")
