"""
Tests for InteractionMachine — Launcher state transitions

These tests validate:
- Typing, cursor movement and navigation
- Cancel unwinds search, help, running session, then exits
- Parameter prompts (required values, flags) before a run
- One session at a time; usage recorded only on success
- Internal '/' commands
- Run-and-exit

Sessions run real child processes (the test interpreter).
"""

import os
import signal

import pytest

from fzc.interaction.state import Action, InputEvent, LineKind, Mode, Pane
from fzc.services.session import SessionStatus
from tests.factories import python_command, run_until_finished


def press(machine, action, text=""):
    machine.handle(InputEvent(action, text))


def lines_of(machine, kind):
    return [line.text for line in machine.state.transcript if line.kind == kind]


def visible_names(machine):
    return [r.entry.name for r in machine.state.ranked_view]


@pytest.fixture
def machine(launcher_factory, sample_commands):
    launcher_factory.write_config({"commands": sample_commands})
    return launcher_factory.create_machine()


class TestSearch:
    """Search text editing."""

    def test_browse_lists_everything(self, machine):
        assert visible_names(machine) == ["Run tests", "Run linter", "Deploy"]

    def test_typing_filters(self, machine):
        machine.type_text("lint")
        assert machine.state.search_text == "lint"
        assert visible_names(machine) == ["Run linter"]

    def test_typing_refocuses_commands(self, machine):
        press(machine, Action.TOGGLE_PANE)
        assert machine.state.active_pane == Pane.SESSION
        machine.type_text("d")
        assert machine.state.active_pane == Pane.COMMANDS

    def test_backspace_and_cursor(self, machine):
        machine.type_text("dpy")
        press(machine, Action.CURSOR_LEFT)
        press(machine, Action.CURSOR_LEFT)
        machine.type_text("e")
        assert machine.state.search_text == "depy"
        press(machine, Action.CURSOR_END)
        press(machine, Action.BACKSPACE)
        assert machine.state.search_text == "dep"
        press(machine, Action.CURSOR_HOME)
        press(machine, Action.DELETE)
        assert machine.state.search_text == "ep"
        assert machine.state.cursor_position == 0

    def test_typing_resets_selection(self, machine):
        press(machine, Action.DOWN)
        machine.type_text("r")
        assert machine.state.selection_index == 0

    def test_filter_shown(self, launcher_factory, sample_commands):
        launcher_factory.write_config({
            "providers": {"config": {"alias": "cf"}},
            "commands": sample_commands,
        })
        machine = launcher_factory.create_machine()
        machine.type_text("!cf dep")
        assert machine.state.active_filter.filter_token == "cf"
        assert visible_names(machine) == ["Deploy"]


class TestNavigation:
    """Selection movement."""

    def test_wraps_both_ways(self, machine):
        press(machine, Action.UP)
        assert machine.state.selection_index == 2
        press(machine, Action.DOWN)
        assert machine.state.selection_index == 0

    def test_page_moves_clamp(self, machine):
        machine.state.page_size = 10
        press(machine, Action.PAGE_DOWN)
        assert machine.state.selection_index == 2
        press(machine, Action.PAGE_UP)
        assert machine.state.selection_index == 0

    def test_empty_list(self, machine):
        machine.type_text("zzzz")
        press(machine, Action.DOWN)
        assert machine.state.selection_index == 0
        assert machine.state.selected_entry is None

    def test_session_pane_scrolls(self, machine):
        press(machine, Action.TOGGLE_PANE)
        press(machine, Action.UP)
        press(machine, Action.UP)
        press(machine, Action.DOWN)
        assert machine.state.session_scroll == 1
        assert machine.state.selection_index == 0


class TestCancel:
    """Esc unwinds one layer at a time."""

    def test_order(self, machine):
        machine.type_text("dep")
        machine.state.help_visible = True

        press(machine, Action.CANCEL)
        assert machine.state.search_text == ""
        assert machine.state.help_visible

        press(machine, Action.CANCEL)
        assert not machine.state.help_visible
        assert not machine.state.exit_requested

        press(machine, Action.CANCEL)
        assert machine.state.exit_requested

    def test_help_toggle(self, machine):
        press(machine, Action.TOGGLE_HELP, "?")
        assert machine.state.help_visible
        press(machine, Action.TOGGLE_HELP, "?")
        assert not machine.state.help_visible


class TestRun:
    """Starting and finishing sessions."""

    def test_run_selected(self, launcher_factory):
        launcher_factory.write_config({"commands": [
            {"name": "Hello", "run": python_command("print('hello world')")},
        ]})
        machine = launcher_factory.create_machine()
        machine.type_text("hel")
        press(machine, Action.RUN)

        state = machine.state
        assert state.active_pane == Pane.SESSION
        assert state.search_text == ""
        assert lines_of(machine, LineKind.COMMAND) == [python_command("print('hello world')")]

        session = run_until_finished(machine)
        assert session.status == SessionStatus.SUCCEEDED
        assert "hello world" in machine.output_lines()
        assert state.session_history == [session]
        assert machine.context.usage.count("config::Hello") == 1

    def test_failure_not_counted(self, launcher_factory):
        launcher_factory.write_config({"commands": [
            {"name": "Broken", "run": python_command("import sys; sys.exit(2)")},
        ]})
        machine = launcher_factory.create_machine()
        press(machine, Action.RUN)
        session = run_until_finished(machine)

        assert session.status == SessionStatus.FAILED
        assert any("Exit code 2" in text for text in lines_of(machine, LineKind.ERROR))
        assert machine.context.usage.count("config::Broken") == 0

    def test_success_reorders_browse(self, launcher_factory):
        launcher_factory.write_config({"commands": [
            {"name": "First", "run": "true"},
            {"name": "Second", "run": "true"},
        ]})
        machine = launcher_factory.create_machine()
        press(machine, Action.DOWN)
        press(machine, Action.RUN)
        run_until_finished(machine)
        assert visible_names(machine) == ["Second", "First"]

    def test_second_run_refused(self, launcher_factory):
        launcher_factory.write_config({"commands": [
            {"name": "Sleep", "run": python_command("import time; time.sleep(30)")},
        ]})
        machine = launcher_factory.create_machine()
        press(machine, Action.RUN)
        session = machine.state.current_session

        press(machine, Action.TOGGLE_PANE)
        press(machine, Action.RUN)
        assert machine.state.current_session is session
        assert "A command is already running. Press Esc to interrupt it." in lines_of(machine, LineKind.ERROR)

        press(machine, Action.CANCEL)
        assert "Interrupt sent" in lines_of(machine, LineKind.INFO)
        run_until_finished(machine)
        assert session.status == SessionStatus.INTERRUPTED
        assert not machine.state.exit_requested
        assert machine.context.usage.count("config::Sleep") == 0

    def test_quit_interrupts(self, launcher_factory):
        launcher_factory.write_config({"commands": [
            {"name": "Sleep", "run": python_command("import time; time.sleep(30)")},
        ]})
        machine = launcher_factory.create_machine()
        press(machine, Action.RUN)
        press(machine, Action.QUIT)
        assert machine.state.exit_requested
        session = run_until_finished(machine)
        assert session.status == SessionStatus.INTERRUPTED

    def test_undeclared_placeholder(self, launcher_factory):
        launcher_factory.write_config({"commands": [{"name": "Echo", "run": "echo {{x}}"}]})
        machine = launcher_factory.create_machine()
        press(machine, Action.RUN)

        assert machine.state.current_session is None
        assert any("undeclared" in text for text in lines_of(machine, LineKind.ERROR))

    def test_undeclared_placeholder_checked_before_prompt(self, launcher_factory):
        launcher_factory.write_config({"commands": [{
            "name": "Echo", "run": "echo {{who}} {{x}}", "params": [{"name": "who"}],
        }]})
        machine = launcher_factory.create_machine()
        press(machine, Action.RUN)

        assert machine.state.mode == Mode.SEARCH
        assert machine.state.prompt is None
        assert any("undeclared parameter(s): x" in text for text in lines_of(machine, LineKind.ERROR))

    def test_run_ignored_in_session_pane(self, machine):
        press(machine, Action.TOGGLE_PANE)
        press(machine, Action.RUN)
        press(machine, Action.RUN_AND_EXIT)
        assert machine.state.current_session is None
        assert machine.state.transcript == []
        assert not machine.state.exit_requested

    def test_background_child_does_not_block_next_run(self, launcher_factory):
        launcher_factory.write_config({"commands": [
            {"name": "Spawn", "run": "echo started; sleep 5 &"},
        ]})
        machine = launcher_factory.create_machine()
        press(machine, Action.RUN)
        first = run_until_finished(machine, timeout=3)
        try:
            assert first.status == SessionStatus.SUCCEEDED
            assert not machine.state.session_active

            machine.type_text("spawn")
            press(machine, Action.RUN)
            assert machine.state.current_session is not first
            second = run_until_finished(machine, timeout=3)
            assert second.status == SessionStatus.SUCCEEDED
        finally:
            for session in machine.state.session_history:
                try:
                    os.killpg(session.pid, signal.SIGKILL)
                except ProcessLookupError:
                    pass

    def test_spawn_failure_reported(self, launcher_factory):
        launcher_factory.write_config({"commands": [
            {"name": "Nowhere", "run": "true", "working_dir": "does-not-exist"},
        ]})
        machine = launcher_factory.create_machine()
        press(machine, Action.RUN)

        session = machine.state.current_session
        assert session.finished and session.status == SessionStatus.FAILED
        assert any("Failed to start" in text for text in lines_of(machine, LineKind.ERROR))
        assert machine.state.session_history == [session]

    def test_nothing_selected(self, machine):
        machine.type_text("zzzz")
        press(machine, Action.RUN)
        assert machine.state.current_session is None
        assert "No command selected" in lines_of(machine, LineKind.INFO)

    def test_run_and_exit(self, launcher_factory):
        launcher_factory.write_config({"commands": [{"name": "Hi", "run": python_command("print('hi')")}]})
        machine = launcher_factory.create_machine()
        press(machine, Action.RUN_AND_EXIT)
        assert not machine.state.exit_requested

        session = run_until_finished(machine)
        assert machine.state.exit_requested
        assert machine.state.exit_session is session
        assert session.output.strip() == b"hi"


class TestPrompt:
    """Parameter prompts."""

    @pytest.fixture
    def prompted(self, launcher_factory):
        launcher_factory.write_config({"commands": [{
            "name": "Test",
            "run": "echo {{filter}} {{cov}}",
            "params": [
                {"name": "filter", "prompt": "Test filter", "required": True},
                {"name": "cov", "type": "flag", "default": False},
            ],
        }]})
        machine = launcher_factory.create_machine()
        press(machine, Action.RUN)
        return machine

    def test_opens_prompt(self, prompted):
        state = prompted.state
        assert state.mode == Mode.PROMPT
        assert state.prompt.current.name == "filter"
        assert state.prompt.progress == "1/2"
        assert state.current_session is None

    def test_required_reprompts(self, prompted):
        press(prompted, Action.RUN)
        assert prompted.state.prompt.error == "'filter' is required"
        assert prompted.state.prompt.index == 0

    def test_full_flow(self, prompted):
        prompted.type_text("Foo?")
        press(prompted, Action.TOGGLE_HELP, "?")
        assert prompted.state.prompt.text == "Foo??"
        assert not prompted.state.help_visible
        press(prompted, Action.BACKSPACE)
        press(prompted, Action.BACKSPACE)
        press(prompted, Action.RUN)
        assert prompted.state.prompt.current.name == "cov"
        assert prompted.state.prompt.hint == "y/N"

        prompted.type_text("maybe")
        press(prompted, Action.RUN)
        assert prompted.state.prompt.error == "Please enter y or n"

        for _ in range(5):
            press(prompted, Action.BACKSPACE)
        prompted.type_text("y")
        press(prompted, Action.RUN)

        assert prompted.state.mode == Mode.SEARCH
        assert lines_of(prompted, LineKind.COMMAND) == ["echo Foo --cov"]
        run_until_finished(prompted)

    def test_flag_default_on_empty(self, prompted):
        prompted.type_text("x")
        press(prompted, Action.RUN)
        press(prompted, Action.RUN)
        assert lines_of(prompted, LineKind.COMMAND) == ["echo x "]
        run_until_finished(prompted)

    def test_cancel(self, prompted):
        press(prompted, Action.CANCEL)
        assert prompted.state.mode == Mode.SEARCH
        assert prompted.state.prompt is None
        assert prompted.state.current_session is None
        assert not prompted.state.exit_requested


class TestInternalCommands:
    """'/' commands."""

    def test_slash_lists_internal(self, machine):
        machine.type_text("/")
        assert machine.state.internal_mode
        assert [c.name for c in machine.state.internal_view] == ["/init", "/reload"]
        assert machine.state.selected_entry is None

    def test_reload(self, launcher_factory):
        launcher_factory.write_config({"commands": [{"name": "Old", "run": "true"}]})
        machine = launcher_factory.create_machine()
        launcher_factory.write_config({"commands": [
            {"name": "New", "run": "true"},
            {"name": "Newer", "run": "true"},
        ]})

        machine.type_text("/reload")
        press(machine, Action.RUN)
        assert machine.state.search_text == ""
        assert visible_names(machine) == ["New", "Newer"]
        assert "Loaded 2 commands" in lines_of(machine, LineKind.INFO)

    def test_reload_failure_keeps_catalog(self, launcher_factory):
        launcher_factory.write_config({"commands": [{"name": "Old", "run": "true"}]})
        machine = launcher_factory.create_machine()
        launcher_factory.write_config("commands: [broken\n")

        assert machine.reload() is False
        assert visible_names(machine) == ["Old"]
        assert any("Reload failed" in text for text in lines_of(machine, LineKind.ERROR))

    def test_init(self, launcher_factory, isolated_config_home):
        machine = launcher_factory.create_machine()
        target = isolated_config_home / "config.yaml"

        machine.type_text("/init")
        press(machine, Action.RUN)
        assert target.exists()
        assert machine.context.registry.loaded_config.path == target
        assert "Loaded 0 commands" in lines_of(machine, LineKind.INFO)
        assert f"Config: {target}" in lines_of(machine, LineKind.INFO)

    def test_init_force_overwrites(self, launcher_factory, isolated_config_home):
        target = isolated_config_home / "config.yaml"
        launcher_factory.write_config({"commands": [{"name": "Mine", "run": "true"}]}, target)
        machine = launcher_factory.create_machine()
        assert visible_names(machine) == ["Mine"]

        machine.type_text("/init --force")
        press(machine, Action.RUN)
        assert machine.state.mode == Mode.SEARCH
        assert visible_names(machine) == []
        assert "Created config at " + str(target) in lines_of(machine, LineKind.INFO)

    def test_init_existing_asks_before_overwrite(self, launcher_factory, isolated_config_home):
        target = isolated_config_home / "config.yaml"
        launcher_factory.write_config({"commands": [{"name": "Mine", "run": "true"}]}, target)
        original = target.read_bytes()
        machine = launcher_factory.create_machine()

        machine.type_text("/init")
        press(machine, Action.RUN)
        assert any("already exists" in text for text in lines_of(machine, LineKind.ERROR))
        assert machine.state.mode == Mode.CONFIRM
        assert machine.state.confirm.target == target

        machine.type_text("maybe")
        press(machine, Action.RUN)
        assert machine.state.confirm.error == "Please enter y or n"

        for _ in range(5):
            press(machine, Action.BACKSPACE)
        press(machine, Action.RUN)
        assert machine.state.mode == Mode.SEARCH
        assert machine.state.confirm is None
        assert target.read_bytes() == original
        assert f"Kept {target}" in lines_of(machine, LineKind.INFO)
        assert visible_names(machine) == ["Mine"]

    def test_init_confirm_yes(self, launcher_factory, isolated_config_home):
        target = isolated_config_home / "config.yaml"
        launcher_factory.write_config({"commands": [{"name": "Mine", "run": "true"}]}, target)
        machine = launcher_factory.create_machine()

        machine.type_text("/init")
        press(machine, Action.RUN)
        machine.type_text("y")
        press(machine, Action.RUN)

        assert machine.state.mode == Mode.SEARCH
        assert "commands: []" in target.read_text(encoding="utf-8")
        assert visible_names(machine) == []
        assert machine.context.registry.loaded_config.path == target

    def test_init_confirm_cancel(self, launcher_factory, isolated_config_home):
        target = isolated_config_home / "config.yaml"
        launcher_factory.write_config({"commands": [{"name": "Mine", "run": "true"}]}, target)
        original = target.read_bytes()
        machine = launcher_factory.create_machine()

        machine.type_text("/init")
        press(machine, Action.RUN)
        press(machine, Action.CANCEL)
        assert machine.state.mode == Mode.SEARCH
        assert not machine.state.exit_requested
        assert target.read_bytes() == original

    def test_unknown(self, machine):
        machine.type_text("/nope")
        press(machine, Action.RUN)
        assert any("Unknown internal command '/nope'" in text for text in lines_of(machine, LineKind.ERROR))

    def test_announce_without_config(self, launcher_factory):
        machine = launcher_factory.create_machine()
        machine.announce_catalog()
        assert "Loaded 0 commands" in lines_of(machine, LineKind.INFO)
        assert "No config file found. Type /init to create one." in lines_of(machine, LineKind.INFO)
