import numpy as np
import pytest

from biocore.storage.gallery import MemoryGallery
from biocore.storage.template import File, FileList, Template, TemplateList


def test_parse_reads_typed_options_and_flags():
    file = File.parse("faces/query.png[label=3,cache,threshold=0.5,subject=alice]")

    assert file.name == "faces/query.png"
    assert file.get("label") == 3
    assert file.get_bool("cache") is True
    assert file.get("threshold") == pytest.approx(0.5)
    assert file.get("subject") == "alice"


def test_parse_keeps_nested_brackets_and_lists():
    file = File.parse("scores%1.npz[split=(5,5)]")

    assert file.name == "scores%1.npz"
    assert file.get_list("split") == [5, 5]
    assert File.parse("plain.gal").metadata == {}


def test_flat_round_trips():
    text = "gallery.gal[read=true,split=(2,3)]"
    assert File.parse(text).flat() == text
    assert File.parse(File.parse(text).flat()).metadata == File.parse(text).metadata


def test_path_helpers():
    file = File("data/Query.GAL")

    assert file.suffix() == "gal"
    assert file.base_name() == "Query"
    assert file.file_name() == "Query.GAL"
    assert not file.is_null()
    assert File().is_null()


def test_hash_depends_on_options():
    plain = File.parse("input.csv")
    cached = File.parse("input.csv[cache]")

    assert len(plain.hash()) == 8
    assert plain.hash() == File.parse("input.csv").hash()
    assert plain.hash() != cached.hash()


def test_fte_flag_and_failures():
    files = FileList([File("a"), File("b"), File("c")])
    files[1].fte = True

    assert files.failures() == 1
    assert files.names() == ["a", "b", "c"]

    files[1].fte = False
    assert "fte" not in files[1].metadata


def test_equality_is_by_name():
    assert File("a.png", {"label": 1}) == File("a.png")
    assert File("a.png") == "a.png"
    assert len({File("a.png"), File("a.png", {"x": 1})}) == 1


def test_template_payload_is_float32():
    template = Template("a.png", [1, 2, 3])

    assert isinstance(template.file, File)
    assert template.data.dtype == np.float32
    assert template.bytes() == 12


def test_partition_splits_consecutive_segments(records):
    templates = records(6)

    parts = templates.partition([2, 3])
    assert [len(part) for part in parts] == [2, 3]
    assert parts[1].files().names() == ["img2.png", "img3.png", "img4.png"]

    short = templates.mid(0, 3).partition([2, 3])
    assert [len(part) for part in short] == [2, 1]


def test_data_matrix_and_bytes(records):
    templates = records(5, dimension=3)

    assert templates.data_matrix().shape == (5, 3)
    assert templates.bytes() == pytest.approx(5 * 3 * 4)
    assert TemplateList().data_matrix().shape == (0, 0)


def test_from_gallery_reads_every_block(context, put_records):
    stored = put_records("input.mem", 25)

    loaded = TemplateList.from_gallery("input.mem", context)

    assert loaded.files().names() == stored.files().names()
    np.testing.assert_array_equal(loaded.data_matrix(), stored.data_matrix())
    assert MemoryGallery.has_records("input.mem")
