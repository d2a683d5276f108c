"""Tests for the ASCII map renderer."""

import pytest

from ascii_renderer import ASCIIRenderer, calculate_bounds, format_position
from movement import MovementState, Position

FIX = Position(44.4268, 26.1025)


def make_renderer(**display):
    display.setdefault('use_colors', False)
    return ASCIIRenderer(calculate_bounds(FIX, 0.005), display)


def test_bounds_are_centred_on_the_fix():
    bounds = calculate_bounds(FIX, 0.005)
    assert bounds['lat_min'] == pytest.approx(FIX.latitude - 0.0025)
    assert bounds['lat_max'] == pytest.approx(FIX.latitude + 0.0025)
    assert bounds['lon_min'] == pytest.approx(FIX.longitude - 0.0025)
    assert bounds['lon_max'] == pytest.approx(FIX.longitude + 0.0025)


def test_format_position_uses_five_decimals():
    assert format_position(FIX) == "Lat: 44.42680, Lng: 26.10250"
    assert format_position(None) == "N/A"


class TestGrid:

    def test_corners_map_to_grid_corners(self):
        renderer = make_renderer()
        bounds = renderer.map_bounds
        assert renderer.lat_lon_to_grid(bounds['lat_max'], bounds['lon_min']) == (0, 0)
        assert renderer.lat_lon_to_grid(bounds['lat_min'], bounds['lon_max']) == (
            renderer.terminal_width - 1, renderer.map_height - 1)

    def test_positions_outside_the_map_are_clamped(self):
        renderer = make_renderer()
        assert renderer.lat_lon_to_grid(90.0, 180.0) == (renderer.terminal_width - 1, 0)

    def test_grid_cell_round_trip(self):
        renderer = make_renderer()
        position = renderer.grid_to_lat_lon(12, 3)
        assert renderer.lat_lon_to_grid(*position) == (12, 3)


class TestMarkers:

    def test_current_and_target_markers(self):
        renderer = make_renderer()
        target = renderer.grid_to_lat_lon(10, 2)
        renderer.render_markers(MovementState(FIX, target, 1e-5))

        cx, cy = renderer.lat_lon_to_grid(*FIX)
        assert renderer.grid[cy][cx] == '@'
        assert renderer.grid[2][10] == 'X'
        assert renderer.color_grid[2][10] == 'red'

    def test_current_marker_wins_shared_cell(self):
        renderer = make_renderer()
        renderer.render_markers(MovementState(FIX, FIX, 1e-5))
        cx, cy = renderer.lat_lon_to_grid(*FIX)
        assert renderer.grid[cy][cx] == '@'

    def test_no_target_draws_only_current(self):
        renderer = make_renderer()
        renderer.render_markers(MovementState(FIX, None, 1e-5))
        cells = [c for row in renderer.grid for c in row]
        assert cells.count('@') == 1
        assert 'X' not in cells


class TestOutput:

    def test_info_panel(self):
        renderer = make_renderer()
        output = renderer.render_to_string(MovementState(FIX, FIX, 1e-5, moving=False))
        assert "Lat: 44.42680, Lng: 26.10250" in output
        assert "Motion: Inactive" in output
        assert "0.000010 deg/frame" in output

    def test_active_status(self):
        renderer = make_renderer()
        output = renderer.render_to_string(MovementState(FIX, FIX, 1e-5, moving=True))
        assert "Motion: Active" in output

    def test_map_lines_fit_width_without_colors(self):
        renderer = make_renderer()
        output = renderer.render_to_string(MovementState(FIX, FIX, 1e-5), show_info=False)
        lines = output.split('\n')
        assert len(lines) == renderer.map_height
        assert all(len(line) == renderer.terminal_width for line in lines)
        assert '\x1b[' not in output
        assert lines[0][0] == '+'

    def test_colors_are_emitted_when_enabled(self):
        renderer = make_renderer(use_colors=True)
        output = renderer.render_to_string(MovementState(FIX, FIX, 1e-5), show_info=False)
        assert '\x1b[' in output

    @pytest.mark.parametrize('speed,filled', [(1e-6, 0), (1e-4, 30)])
    def test_speed_slider_ends(self, speed, filled):
        renderer = make_renderer()
        assert renderer.speed_slider(speed).count('=') == filled

    def test_error_message(self):
        renderer = make_renderer()
        output = renderer.render_message("Permission to access location was denied", error=True)
        assert "Permission to access location was denied" in output
        assert "(q)" in output
