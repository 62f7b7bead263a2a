import numpy as np
import pandas as pd
import pytest

from biocore.errors import FatalError
from biocore.storage.output import MemoryOutput, NpzOutput, make_output, read_simmat
from biocore.storage.template import File, FileList


def _files(prefix, count):
    return FileList(File(f"{prefix}{i}") for i in range(count))


def test_set_block_offsets_relative_writes(context):
    output = make_output(File("scores.memmtx"), _files("t", 5), _files("q", 3), context,
                         block_rows=2, block_columns=3)

    output.set_block(1, 1)
    output.set_relative(5.0, 0, 1)
    output.close()

    scores, targets, queries = MemoryOutput.get("scores.memmtx")
    assert scores.shape == (3, 5)
    assert scores[2, 4] == 5.0
    assert np.isnan(scores[0, 0])
    assert targets.names() == ["t0", "t1", "t2", "t3", "t4"]


def test_write_outside_matrix_is_fatal(context):
    output = make_output(File("small.memmtx"), _files("t", 2), _files("q", 2), context)
    output.set_block(1, 0)
    with pytest.raises(FatalError):
        output.set_relative(1.0, 0, 0)


def test_npz_output_round_trip(tmp_path, context):
    path = str(tmp_path / "results" / "scores.npz")
    with make_output(File(path), _files("t", 3), _files("q", 2), context) as output:
        assert isinstance(output, NpzOutput)
        for row in range(2):
            for column in range(3):
                output.set_absolute(float(row * 3 + column), row, column)

    scores, targets, queries = read_simmat(path)
    np.testing.assert_array_equal(scores, np.arange(6, dtype=np.float32).reshape(2, 3))
    assert targets.names() == ["t0", "t1", "t2"]
    assert queries.names() == ["q0", "q1"]


def test_csv_output_is_indexed_by_query(tmp_path, context):
    path = str(tmp_path / "scores.csv")
    with make_output(File(path), _files("t", 2), _files("q", 2), context) as output:
        output.set_absolute(0.25, 1, 0)

    frame = pd.read_csv(path, index_col="query")
    assert list(frame.columns) == ["t0", "t1"]
    assert frame.loc["q1", "t0"] == pytest.approx(0.25)


def test_missing_simmat_is_fatal(tmp_path):
    with pytest.raises(FatalError, match="Missing similarity matrix"):
        read_simmat(str(tmp_path / "none.npz"))


def test_unknown_output_suffix_is_fatal(context):
    with pytest.raises(FatalError, match="Unknown output type"):
        make_output(File("scores.txt"), FileList(), FileList(), context)
