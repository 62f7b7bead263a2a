import numpy as np
import pytest

from biocore.algorithms.base import make_distance
from biocore.algorithms.distances import FromAlgorithmDistance, L2Distance, ZScoreDistance
from biocore.errors import FatalError
from biocore.storage.output import MemoryOutput, make_output
from biocore.storage.template import File, Template, TemplateList


def test_l2_scores_are_negated_distances(context):
    targets = TemplateList([Template("t0", [0.0, 0.0]), Template("t1", [3.0, 4.0])])
    queries = TemplateList([Template("q0", [0.0, 0.0])])

    distance = make_distance("L2", context)
    assert isinstance(distance, L2Distance)
    output = make_output(File("l2.memmtx"), targets.files(), queries.files(), context)
    distance.compare(targets, queries, output)
    output.close()

    scores, _, _ = MemoryOutput.get("l2.memmtx")
    np.testing.assert_allclose(scores, [[0.0, -5.0]], atol=1e-6)


def test_failed_records_score_negative_infinity(context):
    failed = Template("t1")
    failed.file.fte = True
    targets = TemplateList([Template("t0", [1.0, 0.0]), failed])
    queries = TemplateList([Template("q0", [1.0, 0.0]), Template("q1", [0.0, 1.0])])

    scores = make_distance("Cosine", context).compare_templates(targets, queries)

    assert scores.shape == (2, 2)
    np.testing.assert_allclose(scores[:, 0], [1.0, 0.0], atol=1e-6)
    assert np.all(np.isneginf(scores[:, 1]))


def test_dot_distance(context):
    targets = TemplateList([Template("t0", [1.0, 2.0])])
    queries = TemplateList([Template("q0", [3.0, 4.0])])

    scores = make_distance("Dot", context).compare_templates(targets, queries)
    np.testing.assert_allclose(scores, [[11.0]])


def test_dimension_mismatch_is_fatal(context):
    targets = TemplateList([Template("t0", [1.0, 2.0, 3.0])])
    queries = TemplateList([Template("q0", [1.0, 2.0])])

    with pytest.raises(FatalError, match="cannot compare"):
        make_distance("L2", context).compare_templates(targets, queries)


def test_zscore_standardises_training_scores(context, records):
    templates = records(15, dimension=3)
    distance = make_distance("ZScore(Cosine)", context)
    assert isinstance(distance, ZScoreDistance)

    distance.train(templates)
    scores = distance.compare_templates(templates, templates)
    off_diagonal = scores[~np.eye(15, dtype=bool)]

    assert off_diagonal.mean() == pytest.approx(0.0, abs=1e-4)
    assert off_diagonal.std() == pytest.approx(1.0, abs=1e-3)


def test_zscore_needs_two_valid_templates(context, records):
    with pytest.raises(FatalError):
        make_distance("ZScore", context).train(records(1))


def test_from_algorithm_distance_reuses_registered_distance(manager):
    source = manager.get_algorithm("Identity:Cosine")
    distance = make_distance("FromAlgorithm(Identity:Cosine)", manager.context, manager)

    assert isinstance(distance, FromAlgorithmDistance)
    assert distance.distance is source.distance


def test_from_algorithm_distance_rejects_classifiers(manager):
    with pytest.raises(FatalError, match="has no distance"):
        make_distance("FromAlgorithm(Identity)", manager.context, manager)


def test_unknown_distance_is_fatal(context):
    with pytest.raises(FatalError, match="Unknown distance type"):
        make_distance("Hamming", context)
