"""Tests for the regex pattern library."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from ytresolve.domain.ports.pattern_library import PatternLibraryPort
from ytresolve.infrastructure.youtube.patterns import (
    PatternSet,
    RegexPatternLibrary,
    load_pattern_library,
    normalize_player_url,
)


@pytest.fixture()
def patterns() -> RegexPatternLibrary:
    return RegexPatternLibrary()


class TestVideoInfo:
    def test_token_and_format_map(
        self, patterns: RegexPatternLibrary, make_video_info
    ) -> None:
        info = make_video_info(token="abc123", fmt_map="itag=18&url=x").decode()
        assert patterns.video_token(info) == "abc123"
        assert patterns.info_format_map(info) == "itag%3D18%26url%3Dx"

    def test_token_missing(self, patterns: RegexPatternLibrary, make_video_info) -> None:
        info = make_video_info(token=None, fmt_map="itag=18").decode()
        assert patterns.video_token(info) is None

    def test_token_not_confused_with_suffix(self, patterns: RegexPatternLibrary) -> None:
        assert patterns.video_token("status=ok&account_token=x") is None

    def test_format_map_missing(
        self, patterns: RegexPatternLibrary, make_video_info
    ) -> None:
        info = make_video_info(token="t").decode()
        assert patterns.info_format_map(info) is None


class TestWatchPage:
    def test_age_gate_marker(self, patterns: RegexPatternLibrary, make_watch_page) -> None:
        assert patterns.has_age_gate(make_watch_page(age_gate=True).decode())
        assert not patterns.has_age_gate(make_watch_page().decode())

    def test_format_map_unescapes_json_ampersand(
        self, patterns: RegexPatternLibrary, make_watch_page
    ) -> None:
        html = make_watch_page(fmt_map="itag=22&url=u&s=abc,itag=18&url=v").decode()
        assert "u0026" in html
        assert patterns.web_page_format_map(html) == "itag=22&url=u&s=abc,itag=18&url=v"

    def test_format_map_missing(self, patterns: RegexPatternLibrary, make_watch_page) -> None:
        assert patterns.web_page_format_map(make_watch_page().decode()) is None

    def test_player_script_url(
        self, patterns: RegexPatternLibrary, make_watch_page
    ) -> None:
        html = make_watch_page(player_url="\\/\\/www.youtube.com\\/s\\/player\\/base.js")
        assert (
            patterns.player_script_url(html.decode())
            == "https://www.youtube.com/s/player/base.js"
        )

    def test_player_script_url_missing(
        self, patterns: RegexPatternLibrary, make_watch_page
    ) -> None:
        assert patterns.player_script_url(make_watch_page(player_url=None).decode()) is None


class TestPlayerScript:
    def test_signature_function_name(
        self, patterns: RegexPatternLibrary, player_script: str
    ) -> None:
        assert patterns.signature_function_name(player_script) == "sig"

    def test_signature_function_name_with_dollar(
        self, patterns: RegexPatternLibrary
    ) -> None:
        script = "c&&d.set('signature',$a_b(c));"
        assert patterns.signature_function_name(script) == "$a_b"

    def test_signature_function_name_missing(
        self, patterns: RegexPatternLibrary
    ) -> None:
        assert patterns.signature_function_name("var a=1;") is None


class TestDash:
    def test_manifest_url_strips_backslashes(self, patterns: RegexPatternLibrary) -> None:
        html = '"dashmpd": "https:\\/\\/manifest.example\\/api\\/s\\/AB.CD\\/x"'
        assert (
            patterns.dash_manifest_url(html) == "https://manifest.example/api/s/AB.CD/x"
        )

    def test_signature_and_replacement(self, patterns: RegexPatternLibrary) -> None:
        url = "https://manifest.example/api/s/AB.CD/x"
        assert patterns.dash_signature(url) == "AB.CD"
        assert (
            patterns.replace_dash_signature(url, "XYZ")
            == "https://manifest.example/api/signature/XYZ/x"
        )

    def test_no_signature(self, patterns: RegexPatternLibrary) -> None:
        assert patterns.dash_signature("https://manifest.example/api/x") is None


class TestNormalizePlayerUrl:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("//yt.example/base.js", "https://yt.example/base.js"),
            ("/s/player/base.js", "https://youtube.com/s/player/base.js"),
            ("https://yt.example/base.js", "https://yt.example/base.js"),
            ("\\/s\\/player\\/base.js", "https://youtube.com/s/player/base.js"),
        ],
    )
    def test_normalize(self, raw: str, expected: str) -> None:
        assert normalize_player_url(raw) == expected


class TestPatternSet:
    def test_library_satisfies_port(self, patterns: RegexPatternLibrary) -> None:
        assert isinstance(patterns, PatternLibraryPort)

    def test_invalid_regex_rejected(self) -> None:
        with pytest.raises(ValidationError, match="does not compile"):
            PatternSet(video_token="(unclosed")

    def test_capture_group_required(self) -> None:
        with pytest.raises(ValidationError, match="capture group"):
            PatternSet(video_token="token=[^&]+")

    def test_age_gate_needs_no_group(self) -> None:
        assert PatternSet(age_gate="age-verification").age_gate == "age-verification"


class TestLoadPatternLibrary:
    def test_defaults_without_path(self) -> None:
        assert load_pattern_library().version == "builtin"

    def test_yaml_override(self, tmp_path: Path) -> None:
        path = tmp_path / "patterns.yaml"
        path.write_text(
            "version: '2024-06'\n"
            "age_gate: 'age-verification-wall'\n"
            "age_signature_script: 'function ageSig(a){return a}'\n"
            "age_signature_function: ageSig\n",
            encoding="utf-8",
        )
        library = load_pattern_library(path)
        assert library.version == "2024-06"
        assert library.has_age_gate("<div class='age-verification-wall'>")
        assert library.age_signature_function == "ageSig"
        assert library.age_signature_script == "function ageSig(a){return a}"
        # untouched patterns keep their defaults
        assert library.video_token("token=t1") == "t1"

    def test_empty_yaml_uses_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "patterns.yaml"
        path.write_text("", encoding="utf-8")
        assert load_pattern_library(path).version == "builtin"

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "patterns.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_pattern_library(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_pattern_library(tmp_path / "nope.yaml")
