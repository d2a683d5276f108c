"""
Server console helpers shared by the telnet and SSH servers
"""

import sys

SHUTDOWN_KEYS = ('x', 's')


def keyboard_monitor(loop, shutdown_event):
    """Set shutdown_event on loop when 'x' or 's' is pressed in the server console"""
    print("\nPress 'x' or 's' in this console to shutdown the server...\n")

    def request_shutdown():
        print("\nShutdown command received from console.")
        loop.call_soon_threadsafe(shutdown_event.set)

    try:
        import msvcrt  # Windows
    except ImportError:
        msvcrt = None

    if msvcrt is not None:
        while True:
            if msvcrt.kbhit():
                key = msvcrt.getch().decode('utf-8', errors='ignore').lower()
                if key in SHUTDOWN_KEYS:
                    request_shutdown()
                    return
        return

    if not sys.stdin.isatty():
        return

    # Unix/Linux
    import termios
    import tty
    old_settings = termios.tcgetattr(sys.stdin)
    try:
        tty.setraw(sys.stdin.fileno())
        while True:
            key = sys.stdin.read(1).lower()
            if key in SHUTDOWN_KEYS:
                request_shutdown()
                return
    finally:
        termios.tcsetattr(sys.stdin, termios.TCSADRAIN, old_settings)
