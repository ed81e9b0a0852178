from __future__ import annotations

from archive import ConvertedFile
from parsing import (
    Fenced,
    Raw,
    parse_file_response,
    parse_project_response,
    sanitize_output_path,
    strip_fence,
)


def _block(path: str, content: str) -> str:
    return f"// START_FILE: {path}\n{content}\n// END_FILE: {path}"


class TestParseProjectResponse:
    def test_returns_blocks_in_source_order(self) -> None:
        text = "\n".join([
            _block("package.json", '{"name": "app"}'),
            _block("index.html", "<div id=\"app\"></div>"),
            _block("src/main.js", "createApp(App).mount('#app');"),
        ])

        files = parse_project_response(text)

        assert files == [
            ConvertedFile("package.json", '{"name": "app"}'),
            ConvertedFile("index.html", "<div id=\"app\"></div>"),
            ConvertedFile("src/main.js", "createApp(App).mount('#app');"),
        ]

    def test_no_blocks_returns_empty_list(self) -> None:
        assert parse_project_response("I could not convert this project.") == []
        assert parse_project_response("") == []

    def test_ignores_prose_between_blocks(self) -> None:
        text = "Here you go:\n" + _block("a.js", "a();") + "\nand also\n" + _block("b.js", "b();")

        assert [f.path for f in parse_project_response(text)] == ["a.js", "b.js"]

    def test_strips_fence_with_language_tag(self) -> None:
        text = _block("package.json", '```json\n{\n  "private": true\n}\n```')

        (file,) = parse_project_response(text)

        assert file.content == '{\n  "private": true\n}'

    def test_leaves_unfenced_content_untouched(self) -> None:
        content = "const a = 1;\n\nexport default a;"

        (file,) = parse_project_response(_block("src/a.js", content))

        assert file.content == content

    def test_inner_fences_are_kept(self) -> None:
        content = "# Title\n\n```bash\nnpm install\n```\n\nDone."

        (file,) = parse_project_response(_block("README.md", content))

        assert file.content == content

    def test_handles_windows_line_endings(self) -> None:
        text = "// START_FILE: a.js\r\nrun();\r\n// END_FILE: a.js\r\n"

        assert parse_project_response(text) == [ConvertedFile("a.js", "run();")]

    def test_mismatched_end_marker_discards_block(self) -> None:
        text = "\n".join([
            "// START_FILE: a.js",
            "a();",
            "// END_FILE: b.js",
            _block("c.js", "c();"),
        ])

        assert parse_project_response(text) == [ConvertedFile("c.js", "c();")]

    def test_start_inside_open_block_restarts(self) -> None:
        text = "// START_FILE: a.js\na();\n" + _block("b.js", "b();")

        assert parse_project_response(text) == [ConvertedFile("b.js", "b();")]

    def test_unterminated_block_is_discarded(self) -> None:
        text = _block("a.js", "a();") + "\n// START_FILE: b.js\nb();"

        assert parse_project_response(text) == [ConvertedFile("a.js", "a();")]

    def test_rejects_path_traversal(self) -> None:
        text = "\n".join([
            _block("../../etc/passwd", "root"),
            _block("/abs/file.js", "x"),
            _block("src/ok.js", "ok"),
        ])

        assert parse_project_response(text) == [ConvertedFile("src/ok.js", "ok")]

    def test_duplicate_paths_keep_last_content(self) -> None:
        text = "\n".join([_block("a.js", "first"), _block("b.js", "b"), _block("a.js", "second")])

        assert parse_project_response(text) == [ConvertedFile("a.js", "second"), ConvertedFile("b.js", "b")]


class TestSanitizeOutputPath:
    def test_normalises_separators_and_dots(self) -> None:
        assert sanitize_output_path("src\\components\\App.vue") == "src/components/App.vue"
        assert sanitize_output_path("./src//App.vue") == "src/App.vue"

    def test_rejects_unsafe_paths(self) -> None:
        assert sanitize_output_path("src/../../x.js") is None
        assert sanitize_output_path("/etc/passwd") is None
        assert sanitize_output_path("C:/Windows/x.js") is None
        assert sanitize_output_path("./") is None


def test_strip_fence_without_language_tag() -> None:
    assert strip_fence("\n```\nbody\n```\n") == "body"


class TestParseFileResponse:
    def test_fenced_reply_returns_inner_text(self) -> None:
        result = parse_file_response("```vue\n<template>\n  <p>Hi</p>\n</template>\n```")

        assert result == Fenced("<template>\n  <p>Hi</p>\n</template>")

    def test_fence_found_anywhere_in_reply(self) -> None:
        result = parse_file_response("Here is the file:\n```js\nexport default 1;\n```\nHope it helps!")

        assert isinstance(result, Fenced)
        assert result.content == "export default 1;"

    def test_unfenced_reply_returned_trimmed(self) -> None:
        result = parse_file_response("\n  export default 1;\n\n")

        assert result == Raw("export default 1;")

    def test_raw_prose_detection(self) -> None:
        assert Raw("Sure! Here is the converted component.").looks_like_prose()
        assert not Raw("<template><p>Hi</p></template>").looks_like_prose()
        assert not Raw("").looks_like_prose()
