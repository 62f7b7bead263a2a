import numpy as np
import pandas as pd
import pytest

from biocore.errors import FatalError
from biocore.storage.gallery import (
    BinaryGallery,
    CsvGallery,
    MemoryGallery,
    NumpyGallery,
    make_gallery,
)
from biocore.storage.template import File, Template, TemplateList


def test_memory_gallery_reads_in_blocks(context, put_records):
    put_records("blocks.mem", 25)
    gallery = make_gallery(File("blocks.mem"), context)

    sizes, flags = [], []
    done = False
    while not done:
        block, done = gallery.read_block()
        sizes.append(len(block))
        flags.append(done)

    assert isinstance(gallery, MemoryGallery)
    assert sizes == [10, 10, 5]
    assert flags == [False, False, True]

    gallery.rewind()
    assert len(gallery.read_block()[0]) == 10


def test_memory_gallery_blocks_follow_later_appends(context, put_records, records):
    put_records("growing.mem", 10)
    reader = make_gallery(File("growing.mem"), context)

    block, done = reader.read_block()
    assert len(block) == 10 and done

    block[0].data[:] = -1.0
    writer = make_gallery(File.parse("growing.mem[append]"), context)
    writer.write_block(records(3, prefix="late"))

    block, done = reader.read_block()
    assert block.files().names() == ["late0.png", "late1.png", "late2.png"]
    assert done
    reader.rewind()
    assert not np.any(reader.read_block()[0][0].data == -1.0)


def test_first_write_truncates_unless_reading(context, put_records, records):
    put_records("fresh.mem", 5)
    put_records("kept.mem", 5)

    fresh = make_gallery(File.parse("fresh.mem"), context)
    fresh.write_block(records(2, prefix="new"))
    fresh.write_block(records(3, prefix="more"))
    assert len(fresh.files()) == 5
    assert fresh.files().names()[0] == "new0.png"

    kept = make_gallery(File.parse("kept.mem[append]"), context)
    kept.write_block(records(2, prefix="new"))
    assert len(kept.files()) == 7

    deduplicated = make_gallery(File.parse("kept.mem[noDuplicates]"), context)
    deduplicated.write_block(records(1, prefix="extra"))
    assert len(deduplicated.files()) == 8


def test_binary_gallery_round_trip(tmp_path, context, records):
    path = str(tmp_path / "out" / "gallery.gal")
    templates = records(12)
    templates[3].file.fte = True
    templates[3].data = np.zeros(0, dtype=np.float32)

    with make_gallery(File(path), context) as gallery:
        assert isinstance(gallery, BinaryGallery)
        gallery.write_block(templates[:7])
        gallery.write_block(templates[7:])

    with make_gallery(File(path), context) as gallery:
        first, done = gallery.read_block()
        assert len(first) == 10 and not done
        loaded = gallery.read_all()

    assert loaded.files().names() == templates.files().names()
    assert loaded[3].file.fte
    assert loaded[0].file.label == 0
    np.testing.assert_array_equal(loaded[5].data, templates[5].data)


def test_binary_gallery_missing_file_is_empty(tmp_path, context):
    gallery = make_gallery(File(str(tmp_path / "none.gal")), context)
    assert len(gallery.files()) == 0


def test_binary_gallery_truncated_file_is_fatal(tmp_path, context, records):
    path = tmp_path / "broken.gal"
    with make_gallery(File(str(path)), context) as gallery:
        gallery.write_block(records(2))
    path.write_bytes(path.read_bytes()[:-5])

    with pytest.raises(FatalError):
        make_gallery(File(str(path)), context).read_all()


def test_csv_gallery_round_trip(tmp_path, context, records):
    path = str(tmp_path / "gallery.csv")
    templates = records(3, dimension=3)
    templates[1].file.fte = True
    templates[1].data = np.zeros(0, dtype=np.float32)

    gallery = make_gallery(File(path), context)
    assert isinstance(gallery, CsvGallery)
    gallery.write_block(templates)

    frame = pd.read_csv(path)
    assert list(frame.columns[:3]) == ["name", "label", "fte"]

    loaded = make_gallery(File(path), context).read_all()
    assert loaded.files().names() == ["img0.png", "img1.png", "img2.png"]
    assert loaded[1].file.fte
    assert loaded[1].data.size == 0
    assert loaded[2].file.label == 2
    np.testing.assert_allclose(loaded[0].data, templates[0].data, rtol=1e-6)


def test_numpy_gallery_is_read_only(tmp_path, context):
    path = str(tmp_path / "features.npy")
    np.save(path, np.arange(6, dtype=np.float32).reshape(3, 2))

    gallery = make_gallery(File(path), context)
    assert isinstance(gallery, NumpyGallery)
    loaded = gallery.read_all()

    assert loaded.files().names() == [f"{path}#0", f"{path}#1", f"{path}#2"]
    np.testing.assert_array_equal(loaded[2].data, [4.0, 5.0])
    with pytest.raises(FatalError):
        gallery.write_block(TemplateList([Template("x", [1.0, 2.0])]))


def test_unknown_suffix_is_fatal(context):
    with pytest.raises(FatalError, match="Unknown gallery type"):
        make_gallery(File("gallery.xyz"), context)
