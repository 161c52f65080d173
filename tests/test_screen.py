"""
Tests for the screen renderer and symbols
"""

import io

from rich.console import Console

from fzc.interaction.state import Action, InputEvent
from fzc.presentation.screen import ScreenRenderer, _visible_window
from fzc.presentation.symbols import ASCII, UNICODE, get_symbols, truncate
from tests.factories import run_until_finished


def render_text(machine, height=30, width=100):
    console = Console(file=io.StringIO(), width=width, height=height, color_system=None)
    renderer = ScreenRenderer(ASCII)
    console.print(renderer.render(machine.state, height))
    return console.file.getvalue()


class TestVisibleWindow:
    def test_short_list(self):
        assert _visible_window(0, 3, 10) == (0, 3)

    def test_keeps_selection_visible(self):
        for selected in range(50):
            start, end = _visible_window(selected, 50, 7)
            assert start <= selected < end
            assert end - start == 7


class TestRender:
    def test_lists_commands(self, launcher_factory, sample_commands):
        launcher_factory.write_config({"commands": sample_commands})
        machine = launcher_factory.create_machine()
        text = render_text(machine)
        assert "Run tests" in text
        assert "Deploy" in text
        assert "ready" in text

    def test_shows_transcript_and_status(self, launcher_factory):
        launcher_factory.write_config({"commands": [{"name": "Greet", "run": "echo greetings"}]})
        machine = launcher_factory.create_machine()
        machine.handle(InputEvent(Action.RUN))
        run_until_finished(machine)
        text = render_text(machine)
        assert "$ echo greetings" in text
        assert "greetings" in text
        assert "ok Greet" in text

    def test_help_panel(self, launcher_factory):
        machine = launcher_factory.create_machine()
        machine.state.help_visible = True
        assert "Toggle this help" in render_text(machine, height=40)

    def test_prompt_line(self, launcher_factory):
        launcher_factory.write_config({"commands": [{
            "name": "Greet", "run": "echo {{who}}",
            "params": [{"name": "who", "prompt": "Who?", "default": "world"}],
        }]})
        machine = launcher_factory.create_machine()
        machine.handle(InputEvent(Action.RUN))
        text = render_text(machine)
        assert "Who?" in text
        assert "default: world" in text

    def test_confirm_line(self, launcher_factory, isolated_config_home):
        launcher_factory.write_config({"commands": []}, isolated_config_home / "config.yaml")
        machine = launcher_factory.create_machine()
        machine.type_text("/init")
        machine.handle(InputEvent(Action.RUN))
        text = render_text(machine)
        assert "Overwrite" in text
        assert "(y/N)" in text

    def test_list_rows_shrink_with_help(self):
        renderer = ScreenRenderer(ASCII)
        assert renderer.list_rows(40, help_visible=True) < renderer.list_rows(40)


class TestSymbols:
    def test_preference(self):
        assert get_symbols("ascii") is ASCII
        assert get_symbols("unicode") is UNICODE

    def test_ascii_only_env(self, monkeypatch):
        monkeypatch.setenv("FZC_ASCII_ONLY", "1")
        assert get_symbols("auto") is ASCII

    def test_truncate(self):
        assert truncate("composer dump-autoload", 12) == "composer ..."
        assert truncate("Short", 50) == "Short"
        assert truncate("abcdef", 2) == "ab"
