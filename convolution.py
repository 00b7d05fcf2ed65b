"""
Convolution: Step-Through 1D / 2D Convolution Engine
=====================================================

The numeric core behind the CNN visualizer. A kernel slides across a fixed
input one position at a time (stride 1, no padding) and every output cell
is the dot product of the kernel with the input window under it.

"Convolution" here is the ML convention: valid-mode cross-correlation, the
kernel is never flipped.

    1D:  y[i]    = sum_j       x[i + j]        * k[j]
    2D:  y[r, c] = sum_{ki,kj} x[r + ki, c + kj] * k[ki, kj]

Each output cell is one animation *step*. The engine owns the current step
and can explain any step as the list of (input, weight, product) terms that
make up its sum, so the presentation layer never re-derives arithmetic.
"""

import math
from collections import namedtuple

import numpy as np
import matplotlib
matplotlib.use("Agg")                   # non-interactive backend (save only)
import matplotlib.pyplot as plt
from matplotlib.patches import Rectangle

from errors import InvalidArgument, InvalidDimensions
from logs import get_logger

logger = get_logger(__name__)


# ================================================================
#  Presets from the browser demos
# ================================================================

INPUT_1D = [1, 0, 2, 3, 0, 1, 1, 2, 0, 1]
KERNEL_1D = [1, 0, -1]

INPUT_2D = [
    [1, 1, 1, 0, 0],
    [0, 1, 1, 1, 0],
    [0, 0, 1, 1, 1],
    [0, 0, 1, 1, 0],
    [0, 1, 1, 0, 0],
]
# Vertical edge detector
KERNEL_2D = [
    [1, 0, -1],
    [1, 0, -1],
    [1, 0, -1],
]

REGION_INPUT = "input"
REGION_OUTPUT = "output"
NO_STEP = None                          # hit-test miss

Term = namedtuple("Term", ["input_value", "kernel_value", "product"])
StepOperands = namedtuple("StepOperands", ["step", "position", "terms", "total"])


# ================================================================
#  Part 1 — Engines
# ================================================================

class ConvolutionEngine:
    """Valid-mode cross-correlation with a step cursor.

    Subclasses fix the dimensionality; everything else (caching, step
    clamping, operand breakdown, hit-testing) is shared and works on the
    flat, row-major step index.
    """

    ndim = None

    def __init__(self, input_data, kernel):
        self.input = self._as_array(input_data, "input")
        self.kernel = self._as_array(kernel, "kernel")
        self._check_shapes()

        self.out_shape = tuple(
            n - k + 1 for n, k in zip(self.input.shape, self.kernel.shape)
        )
        self.output = self._compute_output()
        for arr in (self.input, self.kernel, self.output):
            arr.setflags(write=False)

        self.step = 0
        logger.debug("%s: input %s, kernel %s -> output %s",
                     type(self).__name__, self.input.shape,
                     self.kernel.shape, self.out_shape)

    # ----------------------------------------------------------------
    #  Validation
    # ----------------------------------------------------------------

    def _as_array(self, data, label):
        try:
            arr = np.array(data)
        except ValueError as exc:       # ragged nested lists
            raise InvalidDimensions(f"{label} is not rectangular: {exc}") from exc
        if arr.dtype == object:
            raise InvalidDimensions(f"{label} is not rectangular")
        if arr.ndim != self.ndim:
            raise InvalidDimensions(
                f"{label} must be {self.ndim}-dimensional, got shape {arr.shape}"
            )
        if arr.dtype.kind not in "biuf":
            raise InvalidArgument(f"{label} must be numeric, got dtype {arr.dtype}")
        if arr.dtype.kind == "b":
            arr = arr.astype(np.int64)
        return arr

    def _check_shapes(self):
        for axis, (n, k) in enumerate(zip(self.input.shape, self.kernel.shape)):
            if n == 0 or k == 0:
                raise InvalidDimensions(
                    f"zero length along axis {axis}: "
                    f"input {self.input.shape}, kernel {self.kernel.shape}"
                )
            if k > n:
                raise InvalidDimensions(
                    f"kernel larger than input along axis {axis}: "
                    f"input {self.input.shape}, kernel {self.kernel.shape}"
                )

    # ----------------------------------------------------------------
    #  Arithmetic
    # ----------------------------------------------------------------

    def _window_products(self, step):
        """Input window, kernel and element-wise products for one step.

        Both the cached output and the per-step breakdown go through here,
        so the two can never disagree.
        """
        window = self.input[self._window_slices(step)]
        products = window * self.kernel
        return window.ravel(), self.kernel.ravel(), products.ravel()

    def _compute_output(self):
        dtype = np.result_type(self.input, self.kernel)
        output = np.empty(self.out_shape, dtype=dtype)
        for step in range(output.size):
            _, _, products = self._window_products(step)
            output.flat[step] = products.sum()
        return output

    def compute(self):
        """Return the (cached, read-only) output array."""
        return self.output

    # ----------------------------------------------------------------
    #  Step cursor
    # ----------------------------------------------------------------

    @property
    def total_steps(self):
        return int(np.prod(self.out_shape))

    def clamp_step(self, step):
        return max(0, min(int(step), self.total_steps - 1))

    def set_step(self, step):
        """Move the cursor; out-of-range values are clamped, never rejected."""
        self.step = self.clamp_step(step)
        return self.step

    def is_last_step(self):
        return self.step >= self.total_steps - 1

    def _resolve(self, step):
        return self.step if step is None else self.clamp_step(step)

    def step_operands(self, step=None):
        """Explain one output cell as (input, weight, product) terms.

        Args:
            step: Step index (clamped). Defaults to the current step.
        Returns:
            StepOperands(step, position, terms, total) where ``total`` equals
            the cached output value at ``position``.
        """
        step = self._resolve(step)
        window, weights, products = self._window_products(step)
        terms = tuple(
            Term(w.item(), k.item(), p.item())
            for w, k, p in zip(window, weights, products)
        )
        return StepOperands(step, self.position(step), terms,
                            products.sum().item())

    # ----------------------------------------------------------------
    #  Hit-testing
    # ----------------------------------------------------------------

    def _as_index(self, coordinate):
        if np.ndim(coordinate) == 0:
            coordinate = (coordinate,)
        coordinate = tuple(coordinate)
        if len(coordinate) != self.ndim:
            raise InvalidArgument(
                f"expected a {self.ndim}-axis coordinate, got {coordinate!r}"
            )
        # Logical positions are in cell units; any point inside a cell hits it.
        return tuple(int(math.floor(c)) for c in coordinate)

    def map_coordinate_to_step(self, region, coordinate):
        """Translate a cell picked in the rendered grids into a step.

        Args:
            region:     REGION_OUTPUT or REGION_INPUT; anything else misses.
            coordinate: Cell index (1D) or (row, col) (2D), in cell units.
        Returns:
            Step index, or NO_STEP when nothing was hit.
        """
        if region not in (REGION_INPUT, REGION_OUTPUT):
            return NO_STEP
        index = self._as_index(coordinate)

        if region == REGION_OUTPUT:
            if not all(0 <= i < n for i, n in zip(index, self.out_shape)):
                return NO_STEP
            return int(np.ravel_multi_index(index, self.out_shape))

        if not all(0 <= i < n for i, n in zip(index, self.input.shape)):
            return NO_STEP
        # Centre the kernel on the picked cell, clamped per axis.
        target = tuple(
            max(0, min(i - k // 2, n - 1))
            for i, k, n in zip(index, self.kernel.shape, self.out_shape)
        )
        return int(np.ravel_multi_index(target, self.out_shape))


class ConvolutionEngine1D(ConvolutionEngine):
    """1D sliding window: one step per output element."""

    ndim = 1

    def position(self, step=None):
        return self._resolve(step)

    def window(self, step=None):
        """Half-open input range [start, stop) under the kernel."""
        start = self._resolve(step)
        return start, start + len(self.kernel)

    def _window_slices(self, step):
        return (slice(step, step + self.kernel.shape[0]),)


class ConvolutionEngine2D(ConvolutionEngine):
    """2D sliding window, steps walk the output row-major."""

    ndim = 2

    def position(self, step=None):
        row, col = divmod(self._resolve(step), self.out_shape[1])
        return row, col

    def window(self, step=None):
        """((row_start, row_stop), (col_start, col_stop)) under the kernel."""
        row, col = self.position(step)
        k_rows, k_cols = self.kernel.shape
        return (row, row + k_rows), (col, col + k_cols)

    def _window_slices(self, step):
        row, col = divmod(step, self.out_shape[1])
        k_rows, k_cols = self.kernel.shape
        return slice(row, row + k_rows), slice(col, col + k_cols)


def preset_1d():
    return ConvolutionEngine1D(INPUT_1D, KERNEL_1D)


def preset_2d():
    return ConvolutionEngine2D(INPUT_2D, KERNEL_2D)


# ================================================================
#  Part 2 — Math breakdown text
# ================================================================

def _fmt(v):
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return f"{v:g}" if isinstance(v, float) else str(v)


def format_breakdown(engine, step=None):
    """Render one step as ``x[i]=v × k[j]=w + ... = total``.

    2D steps put one kernel row per line, followed by the sum.
    """
    ops = engine.step_operands(step)
    labels = []
    if engine.ndim == 1:
        start, _ = engine.window(ops.step)
        for j in range(len(ops.terms)):
            labels.append((f"x[{start + j}]", f"k[{j}]"))
    else:
        (r0, _), (c0, _) = engine.window(ops.step)
        k_rows, k_cols = engine.kernel.shape
        for ki in range(k_rows):
            for kj in range(k_cols):
                labels.append((f"x[{r0 + ki},{c0 + kj}]", f"k[{ki},{kj}]"))

    parts = [
        f"({xl}={_fmt(t.input_value)} × {kl}={_fmt(t.kernel_value)})"
        for (xl, kl), t in zip(labels, ops.terms)
    ]

    if engine.ndim == 1:
        return " + ".join(parts) + f" = {_fmt(ops.total)}"

    k_cols = engine.kernel.shape[1]
    lines = [
        " + ".join(parts[i:i + k_cols]) for i in range(0, len(parts), k_cols)
    ]
    lines.append(f"Sum = {_fmt(ops.total)}")
    return "\n".join(lines)


# ================================================================
#  Part 3 — Visualisation
# ================================================================

C_WINDOW = "#2196f3"
C_CURRENT = "#2e7d32"


def _as_grid(arr):
    return arr.reshape(1, -1) if arr.ndim == 1 else arr


def plot_step(engine, step=None):
    """Input (window highlighted), kernel and partially filled output.

    Output cells after the current step are left blank, matching the
    animation where results appear one by one.
    """
    step = engine._resolve(step)
    inp = _as_grid(engine.input)
    ker = _as_grid(engine.kernel)
    out = _as_grid(engine.output).astype(np.float64)

    shown = np.full(out.shape, np.nan)
    shown.flat[:step + 1] = out.flat[:step + 1]

    fig, axes = plt.subplots(
        1, 3, figsize=(12, 3.2 if engine.ndim == 1 else 4.2),
        gridspec_kw={"width_ratios": [inp.shape[1], ker.shape[1], out.shape[1]]},
    )
    panels = [
        (axes[0], inp, "Input x", "viridis"),
        (axes[1], ker, "Kernel k", "coolwarm"),
        (axes[2], shown, "Output y", "magma"),
    ]
    for ax, data, title, cmap in panels:
        ax.imshow(data, cmap=cmap, aspect="equal", interpolation="nearest")
        for (r, c), v in np.ndenumerate(data):
            if not np.isnan(v):
                ax.text(c, r, _fmt(v.item()), ha="center", va="center",
                        color="white", fontsize=10, fontweight="bold")
        ax.set_title(title)
        ax.set_xticks(range(data.shape[1]))
        ax.set_yticks(range(data.shape[0]))

    if engine.ndim == 1:
        (start, stop) = engine.window(step)
        rows, cols = (0, 1), (start, stop)
        cur_r, cur_c = 0, step
    else:
        rows, cols = engine.window(step)
        cur_r, cur_c = engine.position(step)

    axes[0].add_patch(Rectangle(
        (cols[0] - 0.5, rows[0] - 0.5), cols[1] - cols[0], rows[1] - rows[0],
        fill=False, edgecolor=C_WINDOW, linewidth=3,
    ))
    axes[2].add_patch(Rectangle(
        (cur_c - 0.5, cur_r - 0.5), 1, 1,
        fill=False, edgecolor=C_CURRENT, linewidth=3,
    ))

    fig.suptitle(f"Step {step + 1} / {engine.total_steps}",
                 fontsize=12, fontweight="bold")
    fig.tight_layout()
    return fig


def visualize_step(engine, step=None, save_path=None):
    """Save ``plot_step`` to ``save_path`` (if given) and close the figure."""
    fig = plot_step(engine, step)
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches="tight")
        print(f"  Saved: {save_path}")
    plt.close(fig)


# ================================================================
#  Part 4 — Main Demo
# ================================================================

def main():
    print("=" * 62)
    print("  Convolution — Step-Through 1D / 2D")
    print("=" * 62)

    # ----- 1D -----
    cnn1d = preset_1d()
    expected = np.correlate(cnn1d.input, cnn1d.kernel, mode="valid")
    print(f"\n  Input  : {cnn1d.input.tolist()}")
    print(f"  Kernel : {cnn1d.kernel.tolist()}")
    print(f"  Output : {cnn1d.compute().tolist()}  ({cnn1d.total_steps} steps)")
    for step in range(cnn1d.total_steps):
        print(f"    y[{step}]: {format_breakdown(cnn1d, step)}")
    match = np.array_equal(cnn1d.output, expected)
    print(f"  numpy.correlate : {'PASS' if match else '*** FAIL ***'}")

    # ----- 2D -----
    cnn2d = preset_2d()
    windows = np.lib.stride_tricks.sliding_window_view(
        cnn2d.input, cnn2d.kernel.shape)
    expected = np.einsum("ijkl,kl->ij", windows, cnn2d.kernel)
    print(f"\n  2D output ({cnn2d.out_shape[0]}x{cnn2d.out_shape[1]}):")
    for row in cnn2d.compute().tolist():
        print(f"    {row}")
    print("\n  Step 1 breakdown:")
    for line in format_breakdown(cnn2d, 0).splitlines():
        print(f"    {line}")
    match = np.array_equal(cnn2d.output, expected)
    print(f"  sliding-window einsum : {'PASS' if match else '*** FAIL ***'}")

    # ----- visualise -----
    print("\n  Generating visualisations...")
    visualize_step(cnn1d, 0, save_path="conv1d_step.png")
    visualize_step(cnn2d, 4, save_path="conv2d_step.png")


if __name__ == "__main__":
    main()
