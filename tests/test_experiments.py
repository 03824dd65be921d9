import numpy as np
import pytest

from mnistopt.experiments import (
    HEADER,
    ResultPoint,
    init_results_file,
    log_result,
    run_experiment,
    run_lr_decay_experiments,
    run_sgd_experiments,
    run_single_experiment,
    save_results,
)
from mnistopt.mnist import MnistDataset
from mnistopt.optimiser import Method


def make_dataset(n_train=20, n_test=10, seed=3):
    rng = np.random.default_rng(seed)
    return MnistDataset(
        training_images=rng.integers(0, 256, size=(n_train, 784), dtype=np.uint8),
        training_labels=rng.integers(0, 10, size=n_train, dtype=np.uint8),
        testing_images=rng.integers(0, 256, size=(n_test, 784), dtype=np.uint8),
        testing_labels=rng.integers(0, 10, size=n_test, dtype=np.uint8),
    )


def read_rows(path):
    lines = path.read_text().splitlines()
    return lines[0], [line.split(",") for line in lines[1:]]


def test_init_results_file_writes_header(tmp_path):
    path = tmp_path / "r.csv"
    path.write_text("old content\n")
    init_results_file(path)
    assert path.read_text() == "epoch,iteration,loss,accuracy,learning_rate\n"


def test_log_result_appends_formatted_row(tmp_path):
    path = tmp_path / "r.csv"
    init_results_file(path)
    log_result(path, ResultPoint(3, 1000, 0.5, 0.9, 0.1))
    log_result(path, ResultPoint(4, 2000, 0.25, 0.95, 0.1))
    lines = path.read_text().splitlines()
    assert lines[0] == HEADER
    assert lines[1] == "3,1000,0.500000,0.900000,0.100000"
    assert len(lines) == 3
    assert lines[2].startswith("4,2000,")


def test_save_results_single_row(tmp_path):
    path = tmp_path / "s.csv"
    point = save_results(path, 0.75, 0.01)
    header, rows = read_rows(path)
    assert header == HEADER
    assert len(rows) == 1
    assert rows[0][:3] == ["0", "0", "0.000000"]
    assert float(rows[0][3]) == pytest.approx(0.75)
    assert point.accuracy == 0.75 and point.learning_rate == 0.01


def test_run_experiment_logs_initial_and_final(tmp_path):
    path = tmp_path / "exp.csv"
    results = run_experiment(make_dataset(), path, 0.1, 10, 2, Method.SGD)
    header, rows = read_rows(path)
    assert header == HEADER
    assert len(rows) == len(results) == 2
    assert results[0].epoch == 0 and results[0].iteration == 0
    assert results[-1].epoch == 2 and results[-1].iteration == 40
    assert results[-1].loss > 0.0
    for point in results:
        assert 0.0 <= point.accuracy <= 1.0
        assert point.learning_rate == pytest.approx(0.1)
    assert [int(row[1]) for row in rows] == [p.iteration for p in results]


def test_run_experiment_adam(tmp_path):
    path = tmp_path / "adam.csv"
    results = run_experiment(
        make_dataset(), path, 0.001, 5, 1, Method.ADAM, beta1=0.8, beta2=0.99, epsilon=1e-6
    )
    assert results[-1].iteration == 20
    assert np.isfinite(results[-1].loss)


def test_run_experiment_without_full_batch_logs_only_initial(tmp_path):
    path = tmp_path / "none.csv"
    results = run_experiment(make_dataset(n_train=5), path, 0.1, 10, 2, Method.SGD)
    _, rows = read_rows(path)
    assert len(results) == len(rows) == 1


def test_run_experiment_rejects_zero_batch(tmp_path):
    with pytest.raises(ValueError):
        run_experiment(make_dataset(), tmp_path / "x.csv", 0.1, 0, 1, Method.SGD)


def test_run_single_experiment_decay_saves_final_lr(tmp_path):
    path = tmp_path / "single.csv"
    point = run_single_experiment(
        make_dataset(), Method.SGD_LR_DECAY, 0.1, 10, 2, 0.0, 0.001, path
    )
    _, rows = read_rows(path)
    assert len(rows) == 1
    assert point.learning_rate == pytest.approx(0.001)
    assert float(rows[0][4]) == pytest.approx(0.001)
    assert 0.0 <= point.accuracy <= 1.0


def test_run_sgd_experiments_writes_grid(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    files = run_sgd_experiments(make_dataset())
    assert len(files) == len(set(files)) == 9
    assert "results_sgd_0.100_1.csv" in files
    for name in files:
        header, rows = read_rows(tmp_path / name)
        assert header == HEADER
        assert len(rows) == 1


def test_run_lr_decay_experiments_names(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    files = run_lr_decay_experiments(make_dataset())
    assert len(files) == 3
    assert "results_sgd_lr_decay_0.100_0.000.csv" in files
    assert sorted(p.name for p in tmp_path.iterdir()) == sorted(files)