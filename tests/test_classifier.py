"""
Tests for the Gesture Classifier and its backends
=================================================
"""

import numpy as np
import pytest

from gesture_stream.core.errors import FrameProcessingError, InitializationFailure, PreconditionViolation
from gesture_stream.core.types import ClassificationResult, GestureLabel, LANDMARK_DIM, SEQUENCE_LENGTH
from gesture_stream.models.gesture_net import GestureNet, INPUT_DIM, softmax
from gesture_stream.modules.recognition.classifier import ClassifierConfig, GestureClassifier

from conftest import FixedModel


class RawModel:
    """Backend stub returning exactly the configured scores."""

    input_dim = INPUT_DIM
    num_classes = len(GestureLabel)

    def __init__(self, scores):
        self.scores = np.asarray(scores, dtype=np.float64)

    def predict_proba(self, x):
        return self.scores[None, :]


def random_sequence(seed=0):
    rng = np.random.default_rng(seed)
    return rng.random((SEQUENCE_LENGTH, LANDMARK_DIM)).astype(np.float32)


class TestClassifierConfig:
    """Test suite for ClassifierConfig."""

    def test_default_values(self):
        config = ClassifierConfig()
        assert config.backend == "numpy"
        assert config.model_path is None
        assert config.seed == 0

    def test_from_dict(self):
        config = ClassifierConfig.from_dict({"backend": "torch", "model_path": "m.pth", "seed": 7})
        assert config.backend == "torch"
        assert config.model_path == "m.pth"
        assert config.seed == 7

    def test_empty_model_path_means_none(self):
        assert ClassifierConfig.from_dict({"model_path": ""}).model_path is None

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            ClassifierConfig(backend="tensorrt")


class TestGestureNet:
    """Test suite for the NumPy network."""

    def test_softmax_rows_sum_to_one(self):
        probs = softmax(np.array([[1000.0, 0.0], [-3.0, 2.0]]))
        assert np.allclose(probs.sum(axis=1), 1.0)
        assert np.all(np.isfinite(probs))

    def test_seeded_init_is_deterministic(self):
        a = GestureNet.from_seed(5)
        b = GestureNet.from_seed(5)
        for wa, wb in zip(a.weights, b.weights):
            assert np.array_equal(wa, wb)

    def test_dimensions(self):
        net = GestureNet.from_seed()
        assert net.input_dim == INPUT_DIM
        assert net.num_classes == len(GestureLabel)

    def test_mismatched_layers_rejected(self):
        with pytest.raises(ValueError):
            GestureNet([np.zeros((4, 3)), np.zeros((2, 2))], [np.zeros(3), np.zeros(2)])

    def test_save_and_load(self, tmp_path):
        net = GestureNet.from_seed(11)
        path = str(tmp_path / "weights.npz")
        net.save(path)

        loaded = GestureNet.load(path)
        x = random_sequence().reshape(1, -1)

        assert np.allclose(net.predict_proba(x), loaded.predict_proba(x))


class TestGestureClassifier:
    """Test suite for GestureClassifier."""

    @pytest.fixture
    def classifier(self):
        classifier = GestureClassifier()
        classifier.initialize()
        return classifier

    def test_default_backend_is_numpy(self, classifier):
        assert classifier.backend == "numpy"
        assert classifier.is_ready

    def test_distribution_sums_to_one(self, classifier):
        dist = classifier.classify(random_sequence())

        assert set(dist) == set(GestureLabel)
        assert all(0.0 <= p <= 1.0 for p in dist.values())
        assert sum(dist.values()) == pytest.approx(1.0, abs=1e-6)

    def test_deterministic(self, classifier):
        seq = random_sequence(3)
        assert classifier.classify(seq) == classifier.classify(seq.copy())

    def test_predict_is_argmax(self, classifier):
        seq = random_sequence(4)
        dist = classifier.classify(seq)
        result = classifier.predict(seq)

        assert isinstance(result, ClassificationResult)
        assert result.confidence == max(dist.values())
        assert dist[result.label] == result.confidence

    def test_tie_goes_to_lowest_index(self):
        classifier = GestureClassifier(model=RawModel([0.5, 0.5]))
        classifier.initialize()

        result = classifier.predict(random_sequence())

        assert result.label is GestureLabel.from_index(0)
        assert result.confidence == pytest.approx(0.5)

    def test_scores_are_renormalized(self):
        classifier = GestureClassifier(model=RawModel([2.0, 6.0]))
        classifier.initialize()

        dist = classifier.classify(random_sequence())

        assert dist[GestureLabel.HELLO] == pytest.approx(0.25)
        assert dist[GestureLabel.THANKYOU] == pytest.approx(0.75)

    @pytest.mark.parametrize("scores", [[-0.1, 1.1], [np.nan, 1.0], [0.0, 0.0], [0.2, 0.3, 0.5]])
    def test_invalid_backend_output(self, scores):
        """A bad backend output is a per-frame failure, not a caller error."""
        classifier = GestureClassifier(model=RawModel(scores))
        classifier.initialize()
        with pytest.raises(FrameProcessingError):
            classifier.classify(random_sequence())

    @pytest.mark.parametrize("shape", [(SEQUENCE_LENGTH - 1, LANDMARK_DIM), (SEQUENCE_LENGTH * LANDMARK_DIM,)])
    def test_wrong_input_shape(self, classifier, shape):
        with pytest.raises(PreconditionViolation):
            classifier.classify(np.zeros(shape, dtype=np.float32))

    def test_classify_before_initialize(self):
        with pytest.raises(PreconditionViolation):
            GestureClassifier().classify(random_sequence())

    def test_close_releases_backend(self, classifier):
        classifier.close()
        assert not classifier.is_ready

    def test_reinitialize_keeps_custom_model(self):
        model = FixedModel(GestureLabel.THANKYOU, 0.9)
        classifier = GestureClassifier(model=model)
        classifier.initialize()
        classifier.close()
        classifier.initialize()

        assert classifier.backend == "custom"
        assert classifier.predict(random_sequence()).label is GestureLabel.THANKYOU
        assert model.calls == 1

    def test_custom_model(self):
        model = FixedModel(GestureLabel.THANKYOU, 0.9)
        classifier = GestureClassifier(model=model)
        classifier.initialize()

        result = classifier.predict(random_sequence())

        assert classifier.backend == "custom"
        assert result.label is GestureLabel.THANKYOU
        assert result.confidence == pytest.approx(0.9)
        assert model.calls == 1

    def test_progress_reported(self):
        seen = []
        GestureClassifier().initialize(progress=seen.append)
        assert seen[0] == 0.0
        assert seen[-1] == 1.0
        assert seen == sorted(seen)


class TestClassifierLoading:
    """Backend loading failures surface as InitializationFailure."""

    def test_missing_model_file(self, tmp_path):
        config = ClassifierConfig(model_path=str(tmp_path / "missing.npz"))
        with pytest.raises(InitializationFailure):
            GestureClassifier(config).initialize()

    def test_corrupt_model_file(self, tmp_path):
        path = tmp_path / "corrupt.npz"
        path.write_bytes(b"not an archive")
        with pytest.raises(InitializationFailure):
            GestureClassifier(ClassifierConfig(model_path=str(path))).initialize()

    def test_input_dimension_mismatch(self, tmp_path):
        path = str(tmp_path / "small.npz")
        GestureNet.from_seed(input_dim=10).save(path)
        with pytest.raises(InitializationFailure):
            GestureClassifier(ClassifierConfig(model_path=path)).initialize()

    def test_class_count_mismatch(self, tmp_path):
        path = str(tmp_path / "wide.npz")
        GestureNet.from_seed(num_classes=3).save(path)
        with pytest.raises(InitializationFailure):
            GestureClassifier(ClassifierConfig(model_path=path)).initialize()

    def test_loads_saved_weights(self, tmp_path):
        path = str(tmp_path / "weights.npz")
        net = GestureNet.from_seed(21)
        net.save(path)

        classifier = GestureClassifier(ClassifierConfig(model_path=path))
        classifier.initialize()
        seq = random_sequence(9)

        expected = net.predict_proba(seq.reshape(1, -1))[0]
        dist = classifier.classify(seq)
        assert dist[GestureLabel.HELLO] == pytest.approx(expected[0], abs=1e-5)


class TestTorchBackend:
    """PyTorch backend parity with the NumPy network."""

    def test_matches_numpy(self):
        pytest.importorskip("torch")
        from gesture_stream.models.torch_net import TorchGestureNet

        net = GestureNet.from_seed(2)
        torch_net = TorchGestureNet.from_numpy(net)
        x = random_sequence(1).reshape(1, -1)

        assert np.allclose(torch_net.predict_proba(x), net.predict_proba(x), atol=1e-5)

    def test_torch_classifier(self):
        pytest.importorskip("torch")
        classifier = GestureClassifier(ClassifierConfig(backend="torch", seed=2))
        classifier.initialize()

        reference = GestureClassifier(ClassifierConfig(seed=2))
        reference.initialize()
        seq = random_sequence(2)

        torch_dist = classifier.classify(seq)
        numpy_dist = reference.classify(seq)
        assert classifier.backend == "torch"
        for label in GestureLabel:
            assert torch_dist[label] == pytest.approx(numpy_dist[label], abs=1e-5)

    def test_checkpoint_round_trip(self, tmp_path):
        torch = pytest.importorskip("torch")
        from gesture_stream.models.torch_net import TorchGestureNet

        model = TorchGestureNet.from_numpy(GestureNet.from_seed(4))
        path = str(tmp_path / "model.pth")
        torch.save({"model_state_dict": model.state_dict()}, path)

        loaded = TorchGestureNet.load_checkpoint(path)
        x = random_sequence(5).reshape(1, -1)

        assert loaded.input_dim == INPUT_DIM
        assert np.allclose(loaded.predict_proba(x), model.predict_proba(x), atol=1e-6)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
