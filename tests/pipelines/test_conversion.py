import numpy as np
import pandas as pd
import pytest

from biocore.errors import FatalError
from biocore.pipelines.conversion import cat, convert
from biocore.storage.gallery import make_gallery
from biocore.storage.output import read_simmat
from biocore.storage.template import File


def _write_simmat(path, scores, targets, queries):
    with open(path, "wb") as handle:
        np.savez(
            handle,
            scores=np.asarray(scores, dtype=np.float32),
            target_names=np.array(targets, dtype=str),
            query_names=np.array(queries, dtype=str),
        )
    return File(str(path))


def test_convert_gallery_between_formats(tmp_path, context, put_records):
    stored = put_records("input.mem", 13)
    output = File(str(tmp_path / "input.gal"))

    convert("Gallery", File("input.mem"), output, context)

    loaded = make_gallery(output, context).read_all()
    assert loaded.files().names() == stored.files().names()
    np.testing.assert_array_equal(loaded.data_matrix(), stored.data_matrix())


def test_convert_output_to_csv(tmp_path, context):
    simmat = _write_simmat(tmp_path / "in.npz", [[1.0, 2.0, 3.0]], ["t0", "t1", "t2"], ["q0"])
    output = File(str(tmp_path / "out.csv"))

    convert("Output", simmat, output, context)

    frame = pd.read_csv(output.name, index_col="query")
    assert list(frame.columns) == ["t0", "t1", "t2"]
    assert frame.loc["q0", "t2"] == pytest.approx(3.0)


def test_convert_output_size_mismatch_is_fatal(tmp_path, context):
    simmat = _write_simmat(tmp_path / "in.npz", [[1.0, 2.0]], ["t0", "t1", "t2"], ["q0"])

    with pytest.raises(FatalError, match="Similarity matrix and file size mismatch"):
        convert("Output", simmat, File(str(tmp_path / "out.npz")), context)


def test_unrecognized_file_type_is_fatal(context):
    with pytest.raises(FatalError, match="Unrecognized file type"):
        convert("Format", File("a.png"), File("b.png"), context)
    with pytest.raises(FatalError, match="Unrecognized file type"):
        cat("Format", [File("a.png")], File("b.png"), context)


def test_cat_galleries(tmp_path, context, put_records):
    first = put_records("first.mem", 4, prefix="a")
    second = put_records("second.mem", 3, prefix="b")
    output = File(str(tmp_path / "all.gal"))

    cat("Gallery", [File("first.mem"), File("second.mem")], output, context)

    names = make_gallery(output, context).files().names()
    assert names == first.files().names() + second.files().names()


def test_cat_gallery_into_an_input_is_fatal(context, put_records):
    put_records("first.mem", 2)

    with pytest.raises(FatalError, match="must not be in"):
        cat("Gallery", [File("first.mem")], File("first.mem"), context)


def test_cat_outputs_column_wise(tmp_path, context):
    left = _write_simmat(tmp_path / "left.npz", [[1.0, 2.0], [3.0, 4.0]], ["t0", "t1"], ["q0", "q1"])
    right = _write_simmat(tmp_path / "right.npz", [[5.0], [6.0]], ["t2"], ["q0", "q1"])
    output = File.parse(f"{tmp_path / 'all.npz'}[catType=colWise]")

    cat("Output", [left, right], output, context)

    scores, targets, queries = read_simmat(output.name)
    np.testing.assert_array_equal(scores, [[1.0, 2.0, 5.0], [3.0, 4.0, 6.0]])
    assert targets.names() == ["t0", "t1", "t2"]
    assert queries.names() == ["q0", "q1"]


def test_cat_outputs_row_wise(tmp_path, context):
    top = _write_simmat(tmp_path / "top.npz", [[1.0, 2.0]], ["t0", "t1"], ["q0"])
    bottom = _write_simmat(tmp_path / "bottom.npz", [[3.0, 4.0]], ["t0", "t1"], ["q1"])
    output = File.parse(f"{tmp_path / 'all.npz'}[catType=rowWise]")

    cat("Output", [top, bottom], output, context)

    scores, _, queries = read_simmat(output.name)
    np.testing.assert_array_equal(scores, [[1.0, 2.0], [3.0, 4.0]])
    assert queries.names() == ["q0", "q1"]


def test_cat_outputs_rejects_bad_shapes_and_types(tmp_path, context):
    top = _write_simmat(tmp_path / "top.npz", [[1.0, 2.0]], ["t0", "t1"], ["q0"])
    narrow = _write_simmat(tmp_path / "narrow.npz", [[3.0]], ["t0"], ["q1"])

    with pytest.raises(FatalError, match="Cannot append"):
        cat("Output", [top, narrow], File.parse(f"{tmp_path / 'all.npz'}[catType=rowWise]"), context)
    with pytest.raises(FatalError, match="Unsupported concatenation type"):
        cat("Output", [top, narrow], File.parse(f"{tmp_path / 'all.npz'}[catType=diagonal]"), context)
