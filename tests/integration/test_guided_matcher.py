"""
End-to-end tests for GuidedEpipolarMatcher on a synthetic two-view scene.
"""

import logging

import numpy as np
import pytest

from data_io.camera import camera_from_rotvec
from epimatch.features import Features, IndexedFeatureMatch, empty_features
from epimatch.matching import (
    GuidedEpipolarMatcher,
    GuidedMatchingConfig,
    MatcherStage,
    MatchOutcome,
    match,
    match_pairwise,
)
from tests.synthetic import make_K, make_scene


def _pairs(matches):
    return [(m.feature1_ind, m.feature2_ind) for m in matches]


class TestEndToEnd:

    def test_three_points_and_a_distractor(self, scene):
        matches = []
        assert match(GuidedMatchingConfig(), scene.cam1, scene.cam2,
                     scene.feats1, scene.feats2, matches)
        assert _pairs(matches) == scene.expected
        assert all(m.distance == pytest.approx(0.0, abs=1e-6) for m in matches)
        assert scene.distractor not in {m.feature2_ind for m in matches}

    def test_distractor_lies_on_every_epiline(self, scene):
        # the distractor sits on the epipole, so every query sees two candidates
        matcher = GuidedEpipolarMatcher(GuidedMatchingConfig(), scene.cam1, scene.cam2,
                                        scene.feats1, scene.feats2)
        assert matcher.get_matches([])
        assert matcher.outcomes == {i: MatchOutcome.MATCHED for i in range(3)}
        assert matcher.report.num_groups == 3
        assert matcher.report.num_matched == 3
        assert matcher.stage is MatcherStage.DONE

    def test_determinism(self, scene):
        runs = []
        for _ in range(3):
            matches = []
            match(GuidedMatchingConfig(), scene.cam1, scene.cam2, scene.feats1, scene.feats2, matches)
            runs.append(matches)
        assert runs[0] == runs[1] == runs[2]

    def test_fresh_state_per_call(self, scene):
        matcher = GuidedEpipolarMatcher(GuidedMatchingConfig(), scene.cam1, scene.cam2,
                                        scene.feats1, scene.feats2)
        first, second = [], []
        assert matcher.get_matches(first)
        assert matcher.get_matches(second)
        assert first == second

    @pytest.mark.parametrize("num_grids", [2, 4])
    def test_grid_count(self, scene, num_grids):
        matches = []
        config = GuidedMatchingConfig(num_grids=num_grids)
        assert match(config, scene.cam1, scene.cam2, scene.feats1, scene.feats2, matches)
        assert _pairs(matches) == scene.expected

    def test_keypoint_extent_without_image_size(self, scene):
        cam2 = camera_from_rotvec(make_K(), [0.0, 0.03, 0.0], [0.2, 0.1, 1.0])
        matcher = GuidedEpipolarMatcher(GuidedMatchingConfig(), scene.cam1, cam2,
                                        scene.feats1, scene.feats2)
        assert matcher.get_matches([])
        top_left, bottom_right = matcher.bounding_box
        np.testing.assert_allclose(top_left, scene.feats2.kpts_xy.min(axis=0))
        np.testing.assert_allclose(bottom_right, scene.feats2.kpts_xy.max(axis=0))


class TestExclusion:

    def test_seeded_matches_are_kept_and_excluded(self, scene):
        seed = IndexedFeatureMatch(0, 3, 0.5)
        matches = [seed]
        assert match(GuidedMatchingConfig(), scene.cam1, scene.cam2,
                     scene.feats1, scene.feats2, matches)
        assert matches[0] is seed
        new = matches[1:]
        assert _pairs(new) == [(1, 0), (2, 2)]
        assert all(m.feature1_ind != 0 and m.feature2_ind != 3 for m in new)

    def test_injectivity(self, scene):
        # a wrong seed blocks the true partner of feature 0 in image 2
        matches = [IndexedFeatureMatch(1, 3, 1.0)]
        assert match(GuidedMatchingConfig(), scene.cam1, scene.cam2,
                     scene.feats1, scene.feats2, matches)
        firsts = [m.feature1_ind for m in matches]
        seconds = [m.feature2_ind for m in matches]
        assert len(firsts) == len(set(firsts))
        assert len(seconds) == len(set(seconds))
        assert 3 not in seconds[1:] and 1 not in firsts[1:]

    def test_everything_already_matched(self, scene):
        matches = [IndexedFeatureMatch(i, j, 0.0) for i, j in scene.expected]
        before = list(matches)
        matcher = GuidedEpipolarMatcher(GuidedMatchingConfig(), scene.cam1, scene.cam2,
                                        scene.feats1, scene.feats2)
        assert matcher.get_matches(matches)
        assert matches == before
        assert matcher.report.num_queries == 0


class TestFailures:

    def test_empty_features2(self, scene):
        matches = [IndexedFeatureMatch(0, 3, 0.0)]
        assert not match(GuidedMatchingConfig(), scene.cam1, scene.cam2,
                         scene.feats1, empty_features(32), matches)
        assert matches == [IndexedFeatureMatch(0, 3, 0.0)]

    def test_empty_features1(self, scene):
        matches = []
        assert not match(GuidedMatchingConfig(), scene.cam1, scene.cam2,
                         empty_features(32), scene.feats2, matches)
        assert matches == []

    def test_degenerate_cameras(self, scene):
        matches = []
        matcher = GuidedEpipolarMatcher(GuidedMatchingConfig(), scene.cam1, scene.cam1,
                                        scene.feats1, scene.feats2)
        assert not matcher.get_matches(matches)
        assert matches == []
        assert matcher.stage is MatcherStage.UNINITIALIZED

    def test_descriptor_size_mismatch(self, scene):
        feats2 = Features(scene.feats2.kpts_xy, scene.feats2.desc[:, :16])
        assert not match(GuidedMatchingConfig(), scene.cam1, scene.cam2,
                         scene.feats1, feats2, [])

    @pytest.mark.parametrize("image_size", [(640, 480), None])
    def test_non_finite_keypoint(self, scene, image_size):
        kpts2 = scene.feats2.kpts_xy.copy()
        kpts2[1] = np.nan
        feats2 = Features(kpts2, scene.feats2.desc)
        cam2 = camera_from_rotvec(make_K(), [0.0, 0.03, 0.0], [0.2, 0.1, 1.0],
                                  image_size=image_size)
        matches = [IndexedFeatureMatch(0, 3, 0.0)]
        assert not match(GuidedMatchingConfig(), scene.cam1, cam2,
                         scene.feats1, feats2, matches)
        assert matches == [IndexedFeatureMatch(0, 3, 0.0)]

    def test_failure_is_logged(self, scene, caplog):
        logger = logging.getLogger("epimatch.test")
        with caplog.at_level(logging.WARNING, logger="epimatch.test"):
            match(GuidedMatchingConfig(), scene.cam1, scene.cam1,
                  scene.feats1, scene.feats2, [], logger=logger)
        assert "zero baseline" in caplog.text

    def test_invalid_config_raises(self, scene):
        with pytest.raises(ValueError):
            GuidedEpipolarMatcher(GuidedMatchingConfig(lowes_ratio=0.0), scene.cam1, scene.cam2,
                                  scene.feats1, scene.feats2)


class TestOutcomes:

    def test_no_candidates_when_alone_on_line(self):
        scene = make_scene()
        # drop the distractor: each corridor now holds a single feature
        keep = [i for i in range(len(scene.feats2)) if i != scene.distractor]
        feats2 = Features(scene.feats2.kpts_xy[keep], scene.feats2.desc[keep])
        matcher = GuidedEpipolarMatcher(GuidedMatchingConfig(), scene.cam1, scene.cam2,
                                        scene.feats1, feats2)
        matches = []
        assert matcher.get_matches(matches)
        assert MatchOutcome.SKIPPED_NO_CANDIDATES in matcher.outcomes.values()
        assert matcher.report.num_no_candidates + matcher.report.num_matched + \
            matcher.report.num_ambiguous == 3

    def test_ambiguous_distractor(self):
        scene = make_scene()
        desc2 = scene.feats2.desc.copy()
        # distractor looks exactly like point 0
        desc2[scene.distractor] = scene.feats1.desc[0]
        feats2 = Features(scene.feats2.kpts_xy, desc2)
        matcher = GuidedEpipolarMatcher(GuidedMatchingConfig(), scene.cam1, scene.cam2,
                                        scene.feats1, feats2)
        matches = []
        assert matcher.get_matches(matches)
        assert matcher.outcomes[0] is MatchOutcome.SKIPPED_AMBIGUOUS
        assert 0 not in {m.feature1_ind for m in matches}


def test_match_pairwise(scene):
    pairwise = {(0, 1): []}
    added = match_pairwise(GuidedMatchingConfig(), [scene.cam1, scene.cam2],
                           [scene.feats1, scene.feats2], pairwise)
    assert added == {(0, 1): 3}
    assert _pairs(pairwise[(0, 1)]) == scene.expected
