import numpy as np
import pytest

from convolution import (
    NO_STEP,
    REGION_INPUT,
    REGION_OUTPUT,
    ConvolutionEngine1D,
    ConvolutionEngine2D,
    format_breakdown,
    visualize_step,
)
from errors import InvalidArgument, InvalidDimensions


# ----------------------------------------------------------------
#  Output
# ----------------------------------------------------------------

def test_preset_1d_output(cnn1d) -> None:
    assert cnn1d.compute().tolist() == [-1, -3, 2, 2, -1, -1, 1, 1]
    assert cnn1d.total_steps == 8
    assert cnn1d.compute()[0] == 1 * 1 + 0 * 0 + 2 * (-1)


def test_preset_2d_output(cnn2d) -> None:
    assert cnn2d.out_shape == (3, 3)
    assert cnn2d.total_steps == 9
    assert cnn2d.compute().tolist() == [[-2, 0, 2], [-3, -2, 2], [-3, -1, 2]]


def test_2d_left_minus_right_column() -> None:
    engine = ConvolutionEngine2D(
        [[1, 0, 1], [0, 0, 1], [1, 0, 1]],
        [[1, 0, -1], [1, 0, -1], [1, 0, -1]],
    )
    assert engine.compute().tolist() == [[(1 + 0 + 1) - (1 + 1 + 1)]]


@pytest.mark.parametrize("n, k", [(1, 1), (5, 1), (6, 3), (9, 9), (12, 4)])
def test_1d_sum_identity(n, k) -> None:
    rng = np.random.default_rng(n * 31 + k)
    x = rng.integers(-5, 6, size=n)
    w = rng.integers(-3, 4, size=k)
    engine = ConvolutionEngine1D(x, w)

    out = engine.compute()
    assert len(out) == n - k + 1
    for i in range(len(out)):
        assert out[i] == sum(x[i + j] * w[j] for j in range(k))


@pytest.mark.parametrize("shape, kshape", [((4, 6), (2, 3)), ((3, 3), (3, 1)), ((5, 2), (1, 2))])
def test_2d_double_sum_identity(shape, kshape) -> None:
    rng = np.random.default_rng(sum(shape) + sum(kshape))
    x = rng.normal(size=shape)
    w = rng.normal(size=kshape)
    engine = ConvolutionEngine2D(x, w)

    out = engine.compute()
    assert out.shape == (shape[0] - kshape[0] + 1, shape[1] - kshape[1] + 1)
    for r in range(out.shape[0]):
        for c in range(out.shape[1]):
            expected = sum(
                x[r + ki, c + kj] * w[ki, kj]
                for ki in range(kshape[0]) for kj in range(kshape[1])
            )
            assert out[r, c] == pytest.approx(expected)


def test_compute_is_cached_and_read_only(cnn1d) -> None:
    first = cnn1d.compute()
    cnn1d.set_step(4)
    assert cnn1d.compute() is first
    with pytest.raises(ValueError):
        first[0] = 100


def test_caller_array_is_not_frozen() -> None:
    data = np.array([1.0, 2.0, 3.0])
    ConvolutionEngine1D(data, [1.0])
    data[0] = 5.0
    assert data[0] == 5.0


# ----------------------------------------------------------------
#  Validation
# ----------------------------------------------------------------

@pytest.mark.parametrize("inp, ker", [
    ([1, 2], [1, 2, 3]),
    ([], [1]),
    ([1, 2, 3], []),
])
def test_1d_invalid_dimensions(inp, ker) -> None:
    with pytest.raises(InvalidDimensions):
        ConvolutionEngine1D(inp, ker)


@pytest.mark.parametrize("inp, ker", [
    ([[1, 2], [3, 4]], [[1, 2, 3]]),
    ([[1, 2], [3, 4]], [[1], [2], [3]]),
    ([[1, 2], [3]], [[1]]),
    ([[1, 2]], [1]),
])
def test_2d_invalid_dimensions(inp, ker) -> None:
    with pytest.raises(InvalidDimensions):
        ConvolutionEngine2D(inp, ker)


def test_non_numeric_input_rejected() -> None:
    with pytest.raises(InvalidArgument):
        ConvolutionEngine1D(["a", "b"], ["c"])


# ----------------------------------------------------------------
#  Step cursor
# ----------------------------------------------------------------

@pytest.mark.parametrize("requested, expected", [
    (-100, 0), (-1, 0), (0, 0), (3, 3), (7, 7), (8, 7), (10**6, 7),
])
def test_set_step_clamps(cnn1d, requested, expected) -> None:
    assert cnn1d.set_step(requested) == expected
    assert cnn1d.step == expected
    assert cnn1d.set_step(requested) == expected


def test_2d_step_to_position(cnn2d) -> None:
    assert cnn2d.position(0) == (0, 0)
    assert cnn2d.position(2) == (0, 2)
    assert cnn2d.position(5) == (1, 2)
    cnn2d.set_step(7)
    assert cnn2d.position() == (2, 1)
    assert cnn2d.window() == ((2, 5), (1, 4))


def test_is_last_step(cnn1d) -> None:
    assert not cnn1d.is_last_step()
    cnn1d.set_step(99)
    assert cnn1d.is_last_step()


# ----------------------------------------------------------------
#  Operand breakdown
# ----------------------------------------------------------------

def test_step_operands_1d(cnn1d) -> None:
    ops = cnn1d.step_operands(0)
    assert ops.step == 0
    assert ops.position == 0
    assert [tuple(t) for t in ops.terms] == [(1, 1, 1), (0, 0, 0), (2, -1, -2)]
    assert ops.total == -1


def test_step_operands_defaults_to_current_step(cnn2d) -> None:
    cnn2d.set_step(4)
    ops = cnn2d.step_operands()
    assert ops.position == (1, 1)
    assert len(ops.terms) == 9
    assert ops.total == cnn2d.output[1, 1]


@pytest.mark.parametrize("engine_fixture", ["cnn1d", "cnn2d"])
def test_operands_match_cached_output(request, engine_fixture) -> None:
    engine = request.getfixturevalue(engine_fixture)
    for step in range(engine.total_steps):
        ops = engine.step_operands(step)
        assert ops.total == engine.output.flat[step]
        assert ops.total == sum(t.product for t in ops.terms)


def test_operands_match_for_float_data() -> None:
    rng = np.random.default_rng(7)
    engine = ConvolutionEngine2D(rng.normal(size=(6, 7)), rng.normal(size=(3, 2)))
    for step in range(engine.total_steps):
        assert engine.step_operands(step).total == engine.output.flat[step]


def test_format_breakdown(cnn1d, cnn2d) -> None:
    text = format_breakdown(cnn1d, 0)
    assert text == "(x[0]=1 × k[0]=1) + (x[1]=0 × k[1]=0) + (x[2]=2 × k[2]=-1) = -1"

    lines = format_breakdown(cnn2d, 0).splitlines()
    assert len(lines) == 4
    assert lines[0].startswith("(x[0,0]=1 × k[0,0]=1)")
    assert lines[-1] == "Sum = -2"


# ----------------------------------------------------------------
#  Hit-testing
# ----------------------------------------------------------------

def test_hit_output_1d(cnn1d) -> None:
    assert cnn1d.map_coordinate_to_step(REGION_OUTPUT, 3) == 3
    assert cnn1d.map_coordinate_to_step(REGION_OUTPUT, 3.7) == 3
    assert cnn1d.map_coordinate_to_step(REGION_OUTPUT, 8) is NO_STEP
    assert cnn1d.map_coordinate_to_step(REGION_OUTPUT, -1) is NO_STEP


@pytest.mark.parametrize("index, step", [
    (0, 0),     # clamped up
    (1, 0),
    (2, 1),
    (5, 4),
    (8, 7),
    (9, 7),     # clamped down
])
def test_hit_input_centres_kernel_1d(cnn1d, index, step) -> None:
    assert cnn1d.map_coordinate_to_step(REGION_INPUT, index) == step


def test_hit_miss_1d(cnn1d) -> None:
    assert cnn1d.map_coordinate_to_step(REGION_INPUT, 10) is NO_STEP
    assert cnn1d.map_coordinate_to_step("kernel", 1) is NO_STEP
    assert cnn1d.map_coordinate_to_step(None, 1) is NO_STEP


def test_hit_2d(cnn2d) -> None:
    assert cnn2d.map_coordinate_to_step(REGION_OUTPUT, (1, 2)) == 5
    assert cnn2d.map_coordinate_to_step(REGION_OUTPUT, (3, 0)) is NO_STEP
    # centre cell of the input -> middle output cell
    assert cnn2d.map_coordinate_to_step(REGION_INPUT, (2, 2)) == 4
    # corners clamp independently per axis
    assert cnn2d.map_coordinate_to_step(REGION_INPUT, (0, 4)) == 2
    assert cnn2d.map_coordinate_to_step(REGION_INPUT, (4, 0)) == 6
    assert cnn2d.map_coordinate_to_step(REGION_INPUT, (5, 0)) is NO_STEP


def test_hit_wrong_arity(cnn2d) -> None:
    with pytest.raises(InvalidArgument):
        cnn2d.map_coordinate_to_step(REGION_OUTPUT, 3)


# ----------------------------------------------------------------
#  Figures
# ----------------------------------------------------------------

@pytest.mark.parametrize("engine_fixture", ["cnn1d", "cnn2d"])
def test_visualize_step_writes_png(request, tmp_path, engine_fixture) -> None:
    engine = request.getfixturevalue(engine_fixture)
    path = tmp_path / "step.png"
    visualize_step(engine, 2, save_path=str(path))
    assert path.stat().st_size > 0
