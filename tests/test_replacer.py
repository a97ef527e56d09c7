"""Tests for RuleChain, RecursiveDescender and replace_category."""

import asyncio
from unittest.mock import MagicMock

import pytest

from queuebot.exceptions import TranscoderError
from queuebot.replacer import RecursiveDescender, RuleChain, replace_category
from queuebot.replacer.rules import ImageRequestRule
from queuebot.wikitext.transcoder import WikitextTranscoder

NESTED = """{{専修学校
| 国 = 日本
| 学校名 = 伊達赤十字看護専門学校
| 学校の略称 =
| 画像 = {{画像募集中|cat=伊達市 (北海道)}}
| 創立年 = [[1944年]]（[[昭和]]19年）4月
}}
"""


def _replace(text, from_category, to_categories, transcoder=None, **kwargs):
    transcoder = transcoder or WikitextTranscoder()
    doc = transcoder.parse_sync(text)
    doc, changed = asyncio.run(replace_category(doc, from_category, to_categories, transcoder, **kwargs))
    return doc.to_wikitext(), changed


class TestRuleChain:
    def test_folds_changed_flags(self, transcoder):
        chain = RuleChain.for_categories("Category:A", ["Category:B"])
        doc = transcoder.parse_sync("[[Category:A]]\n{{リダイレクトの所属カテゴリ|Category:A}}")
        doc, changed = chain.apply(doc)
        assert changed
        assert doc.to_wikitext() == "[[Category:B]]\n{{リダイレクトの所属カテゴリ|Category:B}}"

    def test_unchanged(self, transcoder):
        chain = RuleChain.for_categories("Category:A", ["Category:B"])
        doc, changed = chain.apply(transcoder.parse_sync("[[Category:C]]"))
        assert not changed
        assert doc.to_wikitext() == "[[Category:C]]"

    def test_each_rule_sees_previous_output(self, transcoder):
        first, second = MagicMock(), MagicMock()
        doc = transcoder.parse_sync("x")
        rewritten = transcoder.parse_sync("y")
        first.apply.return_value = rewritten
        second.apply.return_value = None

        result, changed = RuleChain([first, second]).apply(doc)

        second.apply.assert_called_once_with(rewritten)
        assert result is rewritten
        assert changed


class TestScenarios:
    def test_single_target(self):
        assert _replace("[[Category:Name1]]", "Category:Name1", ["Category:Name2"]) == (
            "[[Category:Name2]]", True)

    def test_two_targets(self):
        assert _replace("[[Category:Name1]]", "Category:Name1", ["Category:Name2", "Category:Name3"]) == (
            "[[Category:Name2]]\n[[Category:Name3]]", True)

    def test_positional_template(self):
        assert _replace("{{リダイレクトの所属カテゴリ|1=Category:Name1}}",
                        "Category:Name1", ["Category:Name2", "Category:Name3"]) == (
            "{{リダイレクトの所属カテゴリ|Category:Name2|Category:Name3}}", True)

    def test_nested_template(self):
        text, changed = _replace(NESTED, "Category:伊達市 (北海道)の画像提供依頼",
                                 ["Category:北海道伊達市の画像提供依頼"])
        assert changed
        assert text == (
            "{{専修学校|国=日本|学校名=伊達赤十字看護専門学校|学校の略称="
            "|画像={{画像募集中|cat=北海道伊達市}}"
            "|創立年=[[1944年]]（[[昭和]]19年）4月}}\n"
        )

    def test_unrelated_document_untouched(self):
        assert _replace(NESTED, "Category:無関係", ["Category:X"]) == (NESTED, False)


class TestRecursiveDescender:
    def test_tag_inside_parameter(self):
        text, changed = _replace("{{Navbox|list=[[Category:A]]}}", "Category:A", ["Category:B"])
        assert changed
        assert text == "{{Navbox|list=[[Category:B]]}}"

    def test_deeply_nested(self):
        text, changed = _replace("{{A|x={{B|y={{画像募集中|cat=東京}}}}}}",
                                 "Category:東京の画像提供依頼", ["Category:東京都の画像提供依頼"])
        assert changed
        assert text == "{{A|x={{B|y={{画像募集中|cat=東京都}}}}}}"

    def test_parameter_order_preserved(self):
        text, _ = _replace("{{T|z=1|a=[[Category:A]]|m=2}}", "Category:A", ["Category:B"])
        assert text == "{{T|z=1|a=[[Category:B]]|m=2}}"

    def test_depth_guard(self):
        text, changed = _replace("{{A|x={{B|y=[[Category:A]]}}}}", "Category:A", ["Category:B"], max_depth=1)
        assert not changed
        assert text == "{{A|x={{B|y=[[Category:A]]}}}}"

    def test_parse_failure_leaves_parameter(self):
        real = WikitextTranscoder()

        async def parse(text):
            if "bad" in text:
                raise TranscoderError("cannot parse")
            return real.parse_sync(text)

        async def serialize(doc):
            return real.serialize_sync(doc)

        transcoder = MagicMock()
        transcoder.parse.side_effect = parse
        transcoder.serialize.side_effect = serialize

        doc = real.parse_sync("{{T|a=bad [[Category:A]]|b=[[Category:A]]}}")
        descender = RecursiveDescender(RuleChain.for_categories("Category:A", ["Category:B"]), transcoder)
        doc, changed = asyncio.run(descender.descend(doc))

        assert changed
        assert doc.templates()[0].params == {"a": "bad [[Category:A]]", "b": "[[Category:B]]"}

    def test_serialize_failure_leaves_parameter(self):
        real = WikitextTranscoder()

        async def parse(text):
            return real.parse_sync(text)

        async def serialize(doc):
            raise TranscoderError("cannot serialize")

        transcoder = MagicMock()
        transcoder.parse.side_effect = parse
        transcoder.serialize.side_effect = serialize

        doc = real.parse_sync("{{T|a=[[Category:A]]}}")
        descender = RecursiveDescender(RuleChain.for_categories("Category:A", ["Category:B"]), transcoder)
        doc, changed = asyncio.run(descender.descend(doc))

        assert not changed
        assert doc.to_wikitext() == "{{T|a=[[Category:A]]}}"

    def test_top_level_and_nested_both_rewritten(self):
        text, changed = _replace("{{T|a=[[Category:A]]}}\n[[Category:A]]", "Category:A", ["Category:B"])
        assert changed
        assert text == "{{T|a=[[Category:B]]}}\n[[Category:B]]"


class TestContainers:
    @pytest.mark.parametrize("text,expected", [
        ("<div>\n[[Category:A]]\n</div>", "<div>\n[[Category:B]]\n</div>"),
        ("<noinclude>\n[[Category:A]]\n</noinclude>", "<noinclude>\n[[Category:B]]\n</noinclude>"),
        ("{|\n|-\n| {{リダイレクトの所属カテゴリ|Category:A}}\n|}",
         "{|\n|-\n| {{リダイレクトの所属カテゴリ|Category:B}}\n|}"),
        ("== 見出し{{リダイレクトの所属カテゴリ|Category:A}} ==",
         "== 見出し{{リダイレクトの所属カテゴリ|Category:B}} =="),
        ("[[File:x.jpg|thumb|説明[[Category:A]]]]", "[[File:x.jpg|thumb|説明[[Category:B]]]]"),
        ("{{T|x=<div>[[Category:A]]</div>}}", "{{T|x=<div>[[Category:B]]</div>}}"),
    ])
    def test_rewritten_inside_container(self, text, expected):
        assert _replace(text, "Category:A", ["Category:B"]) == (expected, True)

    def test_removed_inside_container(self):
        assert _replace("<div>\n[[Category:A]]\n</div>", "Category:A", []) == ("<div>\n</div>", True)

    def test_nowiki_left_alone(self):
        assert _replace("<nowiki>[[Category:A]]</nowiki>", "Category:A", ["Category:B"]) == (
            "<nowiki>[[Category:A]]</nowiki>", False)
