"""
Tests for Internal Commands — '/' command parsing and listing
"""

import pytest

from fzc.interaction.internal import (
    InternalInvocation, UnknownInternalCommand, find_internal, parse_internal_command, rank_internal,
)


class TestParse:
    def test_not_internal(self):
        assert parse_internal_command("deploy") is None

    def test_bare_slash(self):
        assert parse_internal_command("/") is None
        assert parse_internal_command("  /  ") is None

    def test_reload(self):
        assert parse_internal_command("/reload") == InternalInvocation("reload")

    def test_init_force(self):
        assert parse_internal_command("/init --force") == InternalInvocation("init", force=True)
        assert parse_internal_command("/INIT -f") == InternalInvocation("init", force=True)
        assert parse_internal_command("/init") == InternalInvocation("init", force=False)

    def test_force_only_for_init(self):
        assert parse_internal_command("/reload --force").force is False

    def test_unknown(self):
        with pytest.raises(UnknownInternalCommand) as excinfo:
            parse_internal_command("/frobnicate")
        assert excinfo.value.name == "frobnicate"
        assert "/init" in str(excinfo.value)


class TestRank:
    def test_all_for_empty_query(self):
        assert [c.name for c in rank_internal("")] == ["/init", "/reload"]

    def test_fuzzy(self):
        assert [c.name for c in rank_internal("rld")] == ["/reload"]

    def test_arguments_ignored(self):
        assert [c.name for c in rank_internal("init --force")][0] == "/init"

    def test_find(self):
        assert find_internal("RELOAD").description == "Reload config and providers"
        assert find_internal("nope") is None
