from __future__ import annotations

import pytest

from aozora.formatter import (
    ALIGN_LEFT,
    ALIGN_RIGHT,
    AnnotationFormatError,
    FormatState,
    format_text,
)
from aozora.rules import BOLD_OFF, BOLD_ON, NEW_PAGE_SENTINEL


def test_unannotated_text_round_trips() -> None:
    text = "吾輩は猫である。\n名前はまだ無い。\n\nどこで生れたかとんと見当がつかぬ。"
    assert format_text(text) == text
    assert format_text(text + "\n") == text + "\n"
    assert format_text("") == ""


def test_block_indent_prefixes_each_body_line() -> None:
    text = "\n".join(
        [
            "前の行",
            "［＃ここから３字下げ］",
            "一行目",
            "二行目",
            "［＃ここで字下げ終わり］",
            "後の行",
        ]
    )
    assert format_text(text) == "前の行\n　　　一行目\n　　　二行目\n後の行"


def test_block_indent_reads_multi_digit_fullwidth_width() -> None:
    text = "［＃ここから１０字下げ］\n本文\n［＃ここで字下げ終わり］\n"
    assert format_text(text) == "　" * 10 + "本文\n"


def test_wrapped_indent_uses_first_width() -> None:
    text = "［＃ここから改行天付き、折り返して２字下げ］\n本文"
    assert format_text(text) == "　　本文"


def test_single_line_indent_applies_once() -> None:
    text = "［＃２字下げ］見出し\n本文"
    assert format_text(text) == "　　見出し\n本文"


def test_single_line_indent_stacks_on_block_indent() -> None:
    text = "［＃ここから１字下げ］\n［＃２字下げ］内側\n外側\n［＃ここで字下げ終わり］"
    assert format_text(text) == "　　　内側\n　外側\n"


def test_raise_markers_pad_the_end_of_line() -> None:
    assert format_text("署名［＃２字上げ］\n次") == "署名　　\n次"
    text = "［＃ここから１字上げ］\nA\n［＃ここで字上げ終わり］\nB"
    assert format_text(text) == "A　\nB"


def test_right_alignment_markers() -> None:
    assert format_text("［＃地付き］署名\n本文") == f"{ALIGN_RIGHT}署名\n本文"
    text = "［＃ここから地付き］\n一\n二\n［＃ここで地付き終わり］\n三"
    assert format_text(text) == (
        f"{ALIGN_RIGHT}\n{ALIGN_RIGHT}一\n{ALIGN_RIGHT}二\n{ALIGN_LEFT}\n三"
    )


def test_trailing_offset_strips_leading_padding_bytes() -> None:
    text = "［＃ここから３字下げ］\n［＃地から２字上げ］署名\n［＃ここで字下げ終わり］"
    # 2 cells * 3 bytes are removed from the 3-cell indent.
    assert format_text(text) == "　署名　　\n"


def test_trailing_offset_larger_than_padding_is_a_no_op() -> None:
    assert format_text("［＃地から２字上げ］署名") == "署名　　"
    text = "［＃ここから１字下げ］\n［＃地から５字上げ］署名\n［＃ここで字下げ終わり］"
    assert format_text(text) == "　署名　　　　　\n"


def test_trailing_offset_equal_to_padding_is_a_no_op() -> None:
    text = "［＃ここから２字下げ］\n［＃地から２字上げ］署名\n［＃ここで字下げ終わり］"
    assert format_text(text) == "　　署名　　\n"


def test_trailing_offset_cuts_on_character_boundary() -> None:
    # The 14-byte left-align directive puts the cut inside the full-width indent.
    text = "［＃ここから１字下げ］\n［＃ここで地付き終わり］［＃地から５字上げ］署名\n［＃ここで字下げ終わり］"
    assert format_text(text) == "　署名　　　　　\n"


def test_trailing_offset_resets_after_one_line() -> None:
    text = "［＃ここから２字下げ］\n［＃地から１字上げ］甲\n乙\n［＃ここで字下げ終わり］"
    assert format_text(text) == "　甲　\n　　乙\n"


def test_colophon_ends_the_scan() -> None:
    text = "本文一\n本文二\n底本：「吾輩は猫である」\n入力：某\n校正：某\n"
    result = format_text(text)
    assert result == "本文一\n本文二\n"
    assert "底本" not in result
    assert "入力" not in result


def test_separator_block_is_skipped() -> None:
    text = "\n".join(
        [
            "吾輩は猫である",
            "夏目漱石",
            "-------------------------------------------------------",
            "【テキスト中に現れる記号について】",
            "《》：ルビ",
            "-------------------------------------------------------",
            "本文",
        ]
    )
    assert format_text(text) == "吾輩は猫である\n夏目漱石\n本文"


def test_unterminated_separator_drops_the_rest() -> None:
    assert format_text("題\n----------\n記号\n本文") == "題\n"


def test_markup_rules_run_on_each_line() -> None:
    text = "第一章［＃「第一章」は大見出し］\n［＃改ページ］\n本文"
    assert format_text(text) == f"{BOLD_ON}第一章{BOLD_OFF}\n{NEW_PAGE_SENTINEL}\n本文"


def test_unknown_annotations_pass_through() -> None:
    text = "本文［＃ここに挿絵］"
    assert format_text(text) == text


def test_ruby_delimiters_are_left_for_resegmentation() -> None:
    text = "｜吾輩《わがはい》は猫《ねこ》である"
    assert format_text(text) == text


@pytest.mark.parametrize(
    "line",
    [
        "［＃ここから字下げ］",
        "［＃天から字下げ］本文",
        "［＃地から字上げ］署名",
        "［＃ここから三字下げ］",
    ],
)
def test_malformed_width_is_fatal(line: str) -> None:
    with pytest.raises(AnnotationFormatError):
        format_text(f"前\n{line}\n後")


def test_formatting_is_reentrant() -> None:
    text = "［＃ここから２字下げ］\n本文"
    assert format_text(text) == format_text(text) == "　　本文"
    assert format_text("本文") == "本文"


def test_format_state_reset_keeps_block_fields() -> None:
    state = FormatState(
        block_indent="　",
        line_indent="　　",
        block_align=ALIGN_RIGHT,
        line_align=ALIGN_RIGHT,
        line_raise="　",
        trailing_pad=6,
    )
    state.reset_line()
    assert state.block_indent == "　"
    assert state.block_align == ALIGN_RIGHT
    assert state.line_indent == ""
    assert state.line_align == ""
    assert state.line_raise == ""
    assert state.trailing_pad == 0
