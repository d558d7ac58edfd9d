import pytest

from cadence.exceptions import FileReadError
from cadence.utils.files import detect_language, read_file_content


def test_reads_relative_to_workspace(tmp_path):
    (tmp_path / "pkg").mkdir()
    (tmp_path / "pkg" / "mod.py").write_text("print('hi')\n", encoding="utf-8")

    content = read_file_content("pkg/mod.py", tmp_path)

    assert content.path == "pkg/mod.py"
    assert content.language == "python"
    assert content.content == "print('hi')\n"
    assert content.size == 12
    assert not content.truncated


def test_truncates_large_files(tmp_path):
    (tmp_path / "big.txt").write_text("a" * 50, encoding="utf-8")
    content = read_file_content("big.txt", tmp_path, max_bytes=10)
    assert content.content == "a" * 10
    assert content.size == 50
    assert content.truncated
    assert content.language is None


def test_missing_file(tmp_path):
    with pytest.raises(FileReadError):
        read_file_content("ghost.py", tmp_path)


@pytest.mark.parametrize(
    "name,language",
    [("a.TSX", "typescript"), ("b.yml", "yaml"), ("Makefile", None), ("c.rs", "rust")],
)
def test_detect_language(name, language):
    assert detect_language(name) == language
