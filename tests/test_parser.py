"""Tests for the queue heading parser and command types."""

import pytest

from queuebot.commands.parser import is_command_heading, parse_command
from queuebot.commands.types import Command, CommandType, OperationType, Scope, generate_id
from queuebot.exceptions import DiscussionLinkMissingError, ErrorCode, InvalidCommandError

BODY = "[[プロジェクト:カテゴリ関連/議論/yyyy年/mm月dd日#XYZ|議論]]を参照。 --[[User:Example|Example]] ([[User talk:Example|Talk]])"
DISCUSSION = "プロジェクト:カテゴリ関連/議論/yyyy年/mm月dd日#XYZ"


def _targets(n):
    return [f"Category:Name{i}" for i in range(2, n + 2)]


def _heading(prefix, n, suffix):
    links = "と".join(f"[[:{c}]]" for c in _targets(n))
    return f"{prefix} [[:Category:Name1]]を{links}{suffix}"


class TestParseCommand:
    @pytest.mark.parametrize("prefix,scope,namespaces", [
        ("Bot:", Scope.BOTH, (0, 14)),
        ("Bot: (記事)", Scope.ARTICLES, (0,)),
        ("Bot: (カテゴリ)", Scope.CATEGORIES, (14,)),
    ])
    @pytest.mark.parametrize("count", [1, 2, 5])
    def test_reassignment(self, prefix, scope, namespaces, count):
        command = parse_command(_heading(prefix, count, "へ"), BODY)
        assert command.command_type is CommandType.REASSIGNMENT
        assert command.from_category == "Category:Name1"
        assert command.to_categories == _targets(count)
        assert command.discussion_link == DISCUSSION
        assert command.scope is scope
        assert command.target_namespaces == namespaces

    @pytest.mark.parametrize("count", [1, 2, 5])
    def test_duplicate_appends_source(self, count):
        command = parse_command(_heading("Bot:", count, "に複製"), BODY)
        assert command.command_type is CommandType.DUPLICATE
        assert command.to_categories == _targets(count) + ["Category:Name1"]

    @pytest.mark.parametrize("prefix,namespaces", [
        ("Bot:", (0, 14)), ("Bot: (記事)", (0,)), ("Bot: (カテゴリ)", (14,)),
    ])
    def test_remove(self, prefix, namespaces):
        command = parse_command(f"{prefix} [[:Category:Name1]]を除去", BODY)
        assert command.command_type is CommandType.REMOVE
        assert command.from_category == "Category:Name1"
        assert command.to_categories == []
        assert command.target_namespaces == namespaces

    def test_six_targets_rejected(self):
        with pytest.raises(InvalidCommandError):
            parse_command(_heading("Bot:", 6, "へ"), BODY)

    def test_zero_targets_rejected(self):
        with pytest.raises(InvalidCommandError):
            parse_command("Bot: [[:Category:Name1]]をへ", BODY)

    @pytest.mark.parametrize("heading", [
        "Bot: Category:ExampleをCategory:Example2へ",
        "Bot: [[:Category:A]]を[[:Category:B]]に移動",
        "Robot: [[:Category:A]]を[[:Category:B]]へ",
        "Bot: [[:Category:A]]を[[B]]へ",
        "Bot: [[:Category:A]]を[[:Category:B]]、[[:Category:C]]へ",
        "Bot: (その他) [[:Category:A]]を[[:Category:B]]へ",
        "Bot: [[:Category:A]]と[[:Category:B]]を除去",
    ])
    def test_malformed_rejected(self, heading):
        with pytest.raises(InvalidCommandError) as exc_info:
            parse_command(heading, BODY)
        assert exc_info.value.message == "コマンド形式が不正です. コマンドを確認し修正してください."
        assert exc_info.value.error_code is ErrorCode.INVALID_COMMAND

    def test_missing_discussion_link(self):
        with pytest.raises(DiscussionLinkMissingError) as exc_info:
            parse_command("Bot: [[:Category:Example]]を[[:Category:Example2]]へ", "no link")
        assert exc_info.value.message == "議論が行われた場所を示すリンクが必要です."

    def test_category_links_are_not_discussion(self):
        with pytest.raises(DiscussionLinkMissingError):
            parse_command("Bot: [[:Category:A]]を[[:Category:B]]へ", "[[:Category:C]]を参照")

    def test_first_non_category_link_wins(self):
        command = parse_command("Bot: [[:Category:A]]を[[:Category:B]]へ",
                                "[[:Category:C]]と[[利用者:Example]]と[[議論ページ]]")
        assert command.discussion_link == "利用者:Example"

    def test_underscores_normalized(self):
        command = parse_command("Bot: [[:Category:東京都_の塔]]を[[:Category:東京の塔]]へ", BODY)
        assert command.from_category == "Category:東京都 の塔"

    def test_is_command_heading(self):
        assert is_command_heading(" Bot: [[:Category:A]]を除去")
        assert not is_command_heading("雑談")


class TestCommandTypes:
    def test_ids_are_ulids_sorted_by_time(self):
        first = generate_id(1_700_000_000_000)
        second = generate_id(1_700_000_000_001)
        assert len(first) == 26
        assert first < second
        assert set(first) <= set("0123456789ABCDEFGHJKMNPQRSTVWXYZ")

    def test_summaries(self):
        base = dict(from_category="Category:A", discussion_link="WP:X", id="01ARZ3NDEKTSV4RRFFQ69G5FAV")
        dup = Command(CommandType.DUPLICATE, to_categories=["Category:B", "Category:A"], **base)
        assert dup.summary() == (
            "BOT: [[:Category:A]]を[[:Category:B]],[[:Category:A]]へ複製 "
            "([[WP:X|議論場所]]) (ID: 01ARZ3NDEKTSV4RRFFQ69G5FAV)"
        )
        remove = Command(CommandType.REMOVE, to_categories=[], **base)
        assert remove.summary() == "BOT: [[:Category:A]]を除去 ([[WP:X|議論場所]]) (ID: 01ARZ3NDEKTSV4RRFFQ69G5FAV)"

    def test_destinations_exclude_source(self):
        command = Command(CommandType.DUPLICATE, "Category:A", ["Category:B", "Category:A"], "WP:X")
        assert command.destinations == ["Category:B"]

    def test_operation_type_for_command(self):
        assert OperationType.for_command(CommandType.REMOVE) is OperationType.REMOVE
        assert OperationType.for_command(CommandType.DUPLICATE) is OperationType.DUPLICATE
