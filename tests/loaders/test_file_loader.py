"""Tests for FileBackedLoader."""

import pytest

from tiercache.exceptions import LoaderError
from tiercache.loaders import FileBackedLoader


@pytest.fixture
def data_file(tmp_path):
    f = tmp_path / "data.csv"
    f.write_text(
        "key,value1,value2,value3\n"
        "user:1,John,Doe,Active\n"
        "user:2, Jane , Smith ,\n"
        "\n"
        "product:1,Laptop,Electronics,Available\n",
        encoding="utf-8",
    )
    return f


class TestFileBackedLoader:
    def test_load_existing_key(self, data_file):
        loader = FileBackedLoader([data_file], header=True)
        assert loader.load("user:1") == ["John", "Doe", "Active"]

    def test_values_trimmed_and_empties_dropped(self, data_file):
        loader = FileBackedLoader([data_file], header=True)
        assert loader.load("user:2") == ["Jane", "Smith"]

    def test_missing_key_is_none(self, data_file):
        loader = FileBackedLoader([data_file], header=True)
        assert loader.load("nope") is None

    def test_header_row_skipped(self, data_file):
        loader = FileBackedLoader([data_file], header=True)
        assert loader.load("key") is None

    def test_header_row_read_when_disabled(self, data_file):
        loader = FileBackedLoader([data_file], header=False)
        assert loader.load("key") == ["value1", "value2", "value3"]

    def test_load_all_partial(self, data_file):
        loader = FileBackedLoader([data_file], header=True)
        result = loader.load_all(["user:1", "product:1", "ghost"])
        assert set(result) == {"user:1", "product:1"}
        assert result["product:1"] == ["Laptop", "Electronics", "Available"]

    def test_records_concatenate_across_files(self, tmp_path):
        a = tmp_path / "a.csv"
        b = tmp_path / "b.csv"
        a.write_text("k,1\nk,2\n", encoding="utf-8")
        b.write_text("k,3\n", encoding="utf-8")
        loader = FileBackedLoader([a, b])
        assert loader.load("k") == ["1", "2", "3"]

    def test_missing_file_skipped(self, tmp_path, data_file):
        loader = FileBackedLoader([tmp_path / "absent.csv", data_file], header=True)
        assert loader.load("user:1") == ["John", "Doe", "Active"]

    def test_custom_delimiter(self, tmp_path):
        f = tmp_path / "data.tsv"
        f.write_text("k\tx\ty\n", encoding="utf-8")
        loader = FileBackedLoader([f], delimiter="\t")
        assert loader.load("k") == ["x", "y"]

    def test_invalid_delimiter_rejected(self, data_file):
        with pytest.raises(ValueError, match="single character"):
            FileBackedLoader([data_file], delimiter="::")

    def test_unreadable_file_raises_loader_error(self, tmp_path):
        f = tmp_path / "latin.csv"
        f.write_bytes(b"k,\xff\xfe\n")
        loader = FileBackedLoader([f], encoding="utf-8")
        with pytest.raises(LoaderError):
            loader.load("k")

    def test_non_string_keys_matched_by_text(self, tmp_path):
        f = tmp_path / "ids.csv"
        f.write_text("42,answer\n", encoding="utf-8")
        loader = FileBackedLoader([f])
        assert loader.load_all([42]) == {42: ["answer"]}
