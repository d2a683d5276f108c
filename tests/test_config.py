"""Tests for settings loading."""

import pytest

from config import DISPLAY_CONFIG, ENGINE_CONFIG, default_settings, load_settings


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(str(tmp_path / 'missing.yaml'))
    assert settings == default_settings()
    assert settings['engine']['epsilon'] == 1e-5
    assert settings['engine']['min_speed'] == 1e-6
    assert settings['engine']['max_speed'] == 1e-4
    assert settings['engine']['default_speed'] == 1e-5


def test_yaml_overrides_are_merged(tmp_path):
    path = tmp_path / 'settings.yaml'
    path.write_text(
        "engine:\n"
        "  clamp_step: true\n"
        "display:\n"
        "  colors:\n"
        "    current: green\n"
    )
    settings = load_settings(str(path))

    assert settings['engine']['clamp_step'] is True
    assert settings['engine']['epsilon'] == ENGINE_CONFIG['epsilon']
    assert settings['display']['colors']['current'] == 'green'
    assert settings['display']['colors']['target'] == DISPLAY_CONFIG['colors']['target']


def test_defaults_are_not_mutated(tmp_path):
    path = tmp_path / 'settings.yaml'
    path.write_text("display:\n  colors:\n    border: white\n")
    load_settings(str(path))
    assert DISPLAY_CONFIG['colors']['border'] == 'cyan'


def test_unknown_section_is_ignored(tmp_path):
    path = tmp_path / 'settings.yaml'
    path.write_text("routing:\n  waypoints: []\n")
    assert 'routing' not in load_settings(str(path))


def test_environment_variable_names_the_file(tmp_path, monkeypatch):
    path = tmp_path / 'env.yaml'
    path.write_text("location:\n  allow: false\n")
    monkeypatch.setenv('GEOMOVER_CONFIG', str(path))
    assert load_settings()['location']['allow'] is False


@pytest.mark.parametrize('content', ["- just\n- a list\n", "engine: 5\n"])
def test_malformed_files_raise(tmp_path, content):
    path = tmp_path / 'bad.yaml'
    path.write_text(content)
    with pytest.raises(ValueError):
        load_settings(str(path))
