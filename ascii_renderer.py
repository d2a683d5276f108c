"""
ASCII Map Renderer
Draws the simulated position and its target as markers on a terminal map
"""

import os
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from colorama import Fore, Style, init

from config import DISPLAY_CONFIG, ENGINE_CONFIG
from movement import MovementState, Position

init()


def calculate_bounds(center: Position, region_delta: float) -> Dict[str, float]:
    """Map bounds of region_delta degrees centred on a position"""
    half = region_delta / 2.0
    return {
        'lat_min': center.latitude - half,
        'lat_max': center.latitude + half,
        'lon_min': center.longitude - half,
        'lon_max': center.longitude + half,
    }


def format_position(position: Optional[Position]) -> str:
    if position is None:
        return "N/A"
    return f"Lat: {position.latitude:.5f}, Lng: {position.longitude:.5f}"


class ASCIIRenderer:
    """Renders a MovementState snapshot as ASCII art in the terminal"""

    info_panel_height = 10

    def __init__(self, map_bounds: Dict[str, float], display_config: Optional[Dict[str, Any]] = None,
                 engine_config: Optional[Dict[str, Any]] = None):
        self.config = dict(DISPLAY_CONFIG)
        if display_config:
            self.config.update(display_config)
        self.engine_config = dict(ENGINE_CONFIG)
        if engine_config:
            self.engine_config.update(engine_config)

        self.terminal_width = max(int(self.config.get('terminal_width', 80)), 20)
        self.full_terminal_height = int(self.config.get('terminal_height', 25))

        self.map_height = self.full_terminal_height - self.info_panel_height
        if self.map_height < 5: self.map_height = 5

        self.map_bounds = map_bounds
        self.colors = self.config['colors']

        self.grid = [[' ' for _ in range(self.terminal_width)]
                     for _ in range(self.map_height)]
        self.color_grid = [[None for _ in range(self.terminal_width)]
                           for _ in range(self.map_height)]

    def clear_grid(self):
        for y in range(self.map_height):
            for x in range(self.terminal_width):
                self.grid[y][x] = ' '
                self.color_grid[y][x] = None

    def cell_size(self) -> Tuple[float, float]:
        """Degrees of latitude and longitude covered by one grid cell"""
        bounds = self.map_bounds
        lat_cell = (bounds['lat_max'] - bounds['lat_min']) / (self.map_height - 1)
        lon_cell = (bounds['lon_max'] - bounds['lon_min']) / (self.terminal_width - 1)
        return lat_cell, lon_cell

    def lat_lon_to_grid(self, latitude: float, longitude: float) -> Tuple[int, int]:
        """Convert latitude/longitude to grid coordinates, clamped to the map"""
        bounds = self.map_bounds

        lat_norm = (latitude - bounds['lat_min']) / (bounds['lat_max'] - bounds['lat_min'])
        lon_norm = (longitude - bounds['lon_min']) / (bounds['lon_max'] - bounds['lon_min'])

        x = int(round(lon_norm * (self.terminal_width - 1)))
        y = int(round((1 - lat_norm) * (self.map_height - 1)))

        x = max(0, min(self.terminal_width - 1, x))
        y = max(0, min(self.map_height - 1, y))

        return x, y

    def grid_to_lat_lon(self, x: int, y: int) -> Position:
        """Centre of a grid cell as a Position (the 'tap' location)"""
        bounds = self.map_bounds
        lat_cell, lon_cell = self.cell_size()
        return Position(bounds['lat_max'] - y * lat_cell, bounds['lon_min'] + x * lon_cell)

    def map_center(self) -> Position:
        bounds = self.map_bounds
        return Position((bounds['lat_min'] + bounds['lat_max']) / 2.0,
                        (bounds['lon_min'] + bounds['lon_max']) / 2.0)

    def _put(self, position: Position, symbol: str, color: str):
        x, y = self.lat_lon_to_grid(position.latitude, position.longitude)
        self.grid[y][x] = symbol
        self.color_grid[y][x] = color

    def render_markers(self, state: MovementState):
        """Target pin first so the current-position marker wins a shared cell"""
        self.clear_grid()
        if state.target is not None:
            self._put(state.target, self.config['target_symbol'], self.colors['target'])
        self._put(state.current, self.config['current_symbol'], self.colors['current'])

    def render_border(self):
        border_color = self.colors['border']
        last_x = self.terminal_width - 1
        last_y = self.map_height - 1

        for x in range(self.terminal_width):
            for y in (0, last_y):
                if self.grid[y][x] == ' ':
                    self.grid[y][x] = '-'
                    self.color_grid[y][x] = border_color

        for y in range(self.map_height):
            for x in (0, last_x):
                if self.grid[y][x] == ' ':
                    self.grid[y][x] = '|'
                    self.color_grid[y][x] = border_color

        for x, y in ((0, 0), (last_x, 0), (0, last_y), (last_x, last_y)):
            if self.grid[y][x] in ('-', '|'):
                self.grid[y][x] = '+'
                self.color_grid[y][x] = border_color

    def get_color_code(self, color_name: Optional[str]) -> str:
        """Convert color name to ANSI color code"""
        if not self.config.get('use_colors', True):
            return ''
        color_map = {
            'black': Fore.BLACK,
            'red': Fore.RED,
            'green': Fore.GREEN,
            'yellow': Fore.YELLOW,
            'blue': Fore.BLUE,
            'magenta': Fore.MAGENTA,
            'cyan': Fore.CYAN,
            'white': Fore.WHITE,
        }
        return color_map.get(color_name, '')

    def _colored(self, text: str, color_name: Optional[str]) -> str:
        code = self.get_color_code(color_name)
        if not code:
            return text
        return code + text + Style.RESET_ALL

    def speed_slider(self, speed: float, width: int = 30) -> str:
        """Text slider showing where speed sits in [min_speed, max_speed]"""
        min_speed = self.engine_config['min_speed']
        max_speed = self.engine_config['max_speed']
        span = max_speed - min_speed
        fraction = (speed - min_speed) / span if span > 0 else 1.0
        fraction = max(0.0, min(1.0, fraction))
        filled = int(round(fraction * width))
        return '[' + '=' * filled + ' ' * (width - filled) + ']'

    def render_to_string(self, state: MovementState, show_info: bool = True) -> str:
        """Render the map and info panel for one snapshot"""
        self.render_markers(state)
        self.render_border()

        output_lines = []
        for y in range(self.map_height):
            line = ""
            for x in range(self.terminal_width):
                line += self._colored(self.grid[y][x], self.color_grid[y][x])
            output_lines.append(line)

        if show_info:
            # Clear from cursor to end of screen so stale text does not linger
            output_lines.append("\x1b[J")
            output_lines.extend(self._create_info_panel(state))

        return '\n'.join(output_lines)

    def _create_info_panel(self, state: MovementState) -> List[str]:
        if state.moving:
            status = self._colored("Active", self.colors['active'])
        else:
            status = self._colored("Inactive", self.colors['inactive'])

        info_lines = []
        info_lines.append("=" * self.terminal_width)
        info_lines.append(f"Geo Mover - {datetime.now().strftime('%H:%M:%S')}")
        info_lines.append(format_position(state.current))
        info_lines.append(f"Target: {format_position(state.target)}")
        info_lines.append(f"Speed: {speed_label(state.speed)} {self.speed_slider(state.speed)}")
        info_lines.append(f"Motion: {status}")
        info_lines.append("")
        info_lines.append("Hotkeys: (space) start/stop, (+/-) speed, (w/a/s/d) move target,")
        info_lines.append("         (c)enter target, (r)efresh, (q)uit")
        return info_lines

    def render_message(self, message: str, error: bool = False) -> str:
        """Full-screen status text shown instead of the map"""
        color = self.colors['error'] if error else None
        lines = ["=" * self.terminal_width, "Geo Mover", "", self._colored(message, color)]
        if error:
            lines.extend(["", "Press (q) to quit"])
        return '\n'.join(lines)

    def clear_screen(self):
        os.system('clear' if os.name == 'posix' else 'cls')

    def display(self, state: MovementState, clear_screen: bool = True):
        """Display the rendered output to the local terminal"""
        if clear_screen:
            self.clear_screen()

        print(self.render_to_string(state))


def speed_label(speed: float) -> str:
    return f"{speed:.6f} deg/frame"
