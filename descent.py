"""
Descent: Gradient Descent on a 2D Loss Surface
==============================================

The numeric core behind the gradient-descent demo. A point (w1, w2) slides
down one of a fixed set of bivariate loss functions using the plain update

    w := w - lr * grad f(w)

with no momentum, decay or clipping. Every visited point and its loss is
kept in a trajectory so the path can be drawn over the surface.

Objectives
----------
    rugged:  f(x, y) = x^2 + y^2 - cos(3x) - cos(3y)
             bowl with ripples; many shallow local minima around the origin.

    ackley:  f(x, y) = -a exp(-b sqrt(0.5 (x^2 + y^2)))
                       - exp(0.5 (cos(cx) + cos(cy))) + a + e
             with a = 20, b = 0.2, c = 2 pi. Global minimum 0 at the origin.
"""

import math

import numpy as np
import matplotlib
matplotlib.use("Agg")                   # non-interactive backend (save only)
import matplotlib.pyplot as plt

from errors import InvalidArgument, NotRunnable, UnknownObjective
from logs import get_logger

logger = get_logger(__name__)

DEFAULT_OBJECTIVE = "rugged"
DEFAULT_LEARNING_RATE = 0.01
SURFACE_RESOLUTION = 50

ACKLEY_A = 20.0
ACKLEY_B = 0.2
ACKLEY_C = 2.0 * math.pi
ACKLEY_EPS = 1e-15


# ================================================================
#  Part 1 — Objective functions
# ================================================================

def rugged_value(x, y):
    """x^2 + y^2 - cos(3x) - cos(3y). Works on scalars and arrays."""
    return x * x + y * y - np.cos(3 * x) - np.cos(3 * y)


def rugged_gradient(x, y):
    return (2 * x + 3 * math.sin(3 * x),
            2 * y + 3 * math.sin(3 * y))


def ackley_value(x, y):
    """Ackley function. Works on scalars and arrays."""
    term1 = -ACKLEY_A * np.exp(-ACKLEY_B * np.sqrt(0.5 * (x * x + y * y)))
    term2 = -np.exp(0.5 * (np.cos(ACKLEY_C * x) + np.cos(ACKLEY_C * y)))
    return term1 + term2 + ACKLEY_A + math.e


def ackley_gradient(x, y):
    """Analytic Ackley gradient; (0, 0) at the origin where r vanishes."""
    r = math.sqrt(0.5 * (x * x + y * y))
    if r < ACKLEY_EPS:
        return 0.0, 0.0

    exp1 = math.exp(-ACKLEY_B * r)
    exp2 = math.exp(0.5 * (math.cos(ACKLEY_C * x) + math.cos(ACKLEY_C * y)))

    dx = (2 * x * exp1) / r + math.pi * exp2 * math.sin(ACKLEY_C * x)
    dy = (2 * y * exp1) / r + math.pi * exp2 * math.sin(ACKLEY_C * y)
    return dx, dy


def rugged_start(rng, domain):
    """Magnitude uniform in [3, 4.5), random sign: outside the central basin."""
    coords = []
    for _ in range(2):
        sign = 1.0 if rng.random() > 0.5 else -1.0
        coords.append(sign * (3 + rng.random() * 1.5))
    return tuple(coords)


def uniform_start(rng, domain):
    lo, hi = domain
    return tuple(rng.random() * (hi - lo) + lo for _ in range(2))


class Objective:
    """A named loss function with its gradient, domain and start policy."""

    def __init__(self, name, label, value, gradient, start, domain=(-5.0, 5.0)):
        self.name = name
        self.label = label
        self.value = value
        self.gradient = gradient
        self.start = start
        self.domain = domain

    def __call__(self, x, y):
        return self.value(x, y)

    def __repr__(self):
        return f"Objective({self.name!r})"


OBJECTIVES = {
    "rugged": Objective(
        "rugged", "Rugged bowl  x² + y² − cos 3x − cos 3y",
        rugged_value, rugged_gradient, rugged_start,
    ),
    "ackley": Objective(
        "ackley", "Ackley",
        ackley_value, ackley_gradient, uniform_start,
    ),
}


def get_objective(name):
    try:
        return OBJECTIVES[name]
    except KeyError:
        raise UnknownObjective(name, OBJECTIVES) from None


# ================================================================
#  Part 2 — Descent engine
# ================================================================

class DescentEngine:
    """Plain gradient descent with a recorded trajectory.

    The engine refuses to step while stopped; the animation driver (or a
    test) calls ``start()`` first. ``reset()`` leaves the running flag
    alone so the caller decides whether a reset also pauses.
    """

    def __init__(self, objective=DEFAULT_OBJECTIVE,
                 learning_rate=DEFAULT_LEARNING_RATE, rng=None, seed=None):
        """
        Args:
            objective:     Registry name of the loss function.
            learning_rate: Positive step size.
            rng:           numpy Generator used for start points.
            seed:          Seed for a fresh Generator when ``rng`` is None.
        """
        self.objective = get_objective(objective)
        self.learning_rate = self._check_learning_rate(learning_rate)
        self.rng = rng if rng is not None else np.random.default_rng(seed)

        self.running = False
        self.iteration = 0
        self.x = 0.0
        self.y = 0.0
        self._trajectory = []
        self.last_reset_randomized = False

        self.reset(randomize=False)

    # ----------------------------------------------------------------
    #  Accessors
    # ----------------------------------------------------------------

    @property
    def position(self):
        return self.x, self.y

    @property
    def value(self):
        return float(self.objective.value(self.x, self.y))

    @property
    def trajectory(self):
        return tuple(self._trajectory)

    def trajectory_arrays(self):
        """Whole-path (xs, ys, zs) arrays for the plotting layer."""
        if not self._trajectory:
            return np.empty(0), np.empty(0), np.empty(0)
        xs, ys, zs = (np.array(col) for col in zip(*self._trajectory))
        return xs, ys, zs

    def loss_history(self):
        return [z for _, _, z in self._trajectory]

    # ----------------------------------------------------------------
    #  Controls
    # ----------------------------------------------------------------

    @staticmethod
    def _check_learning_rate(value):
        try:
            value = float(value)
        except (TypeError, ValueError):
            raise InvalidArgument(f"learning rate must be a number, got {value!r}") from None
        if not math.isfinite(value) or value <= 0:
            raise InvalidArgument(f"learning rate must be positive, got {value!r}")
        return value

    def set_learning_rate(self, value):
        """Takes effect from the next step on."""
        self.learning_rate = self._check_learning_rate(value)
        logger.debug("learning rate -> %g", self.learning_rate)

    def select_objective(self, name):
        """Switch loss function. Position and trajectory are left as they are."""
        self.objective = get_objective(name)
        logger.debug("objective -> %s", name)

    def start(self):
        self.running = True

    def stop(self):
        self.running = False

    def reset(self, randomize=True):
        """Draw a new start point and restart the trajectory there.

        A new random start is drawn even when ``randomize`` is False; the
        flag is only kept for the presentation layer, which skips the
        point animation in that case.
        """
        x, y = self.objective.start(self.rng, self.objective.domain)
        z = float(self.objective.value(x, y))

        self.x, self.y = float(x), float(y)
        self._trajectory = [(self.x, self.y, z)]
        self.iteration = 0
        self.last_reset_randomized = bool(randomize)
        logger.debug("reset %s: start (%.4f, %.4f), loss %.4f",
                     self.objective.name, self.x, self.y, z)
        return self.x, self.y, z

    def step(self):
        """One gradient-descent update.

        Returns:
            (x, y, loss) at the new position.
        Raises:
            NotRunnable: the engine is stopped.
        """
        if not self.running:
            raise NotRunnable("descent engine is stopped; call start() first")

        dx, dy = self.objective.gradient(self.x, self.y)
        x = self.x - self.learning_rate * dx
        y = self.y - self.learning_rate * dy
        z = float(self.objective.value(x, y))

        self.x, self.y = float(x), float(y)
        self.iteration += 1
        self._trajectory.append((self.x, self.y, z))
        return self.x, self.y, z


# ================================================================
#  Part 3 — Plotting data
# ================================================================

def surface_grid(objective, resolution=SURFACE_RESOLUTION):
    """Sample the objective over its domain.

    Returns:
        x, y: 1-D axes of ``resolution + 1`` points each.
        z:    Matrix with z[j, i] = f(x[i], y[j]).
    """
    if isinstance(objective, str):
        objective = get_objective(objective)
    lo, hi = objective.domain
    x = np.linspace(lo, hi, resolution + 1)
    y = np.linspace(lo, hi, resolution + 1)
    xx, yy = np.meshgrid(x, y)
    return x, y, objective.value(xx, yy)


MODEL_X = (-2.0, 2.0)
MODEL_POINTS_X = (-1.5, -1.0, -0.5, 0.0, 0.5, 1.0, 1.5)
MODEL_SCALE = 0.2


def model_line(position, x_range=MODEL_X, scale=MODEL_SCALE):
    """Current weights read as a regression line y = (s*w1) x + (s*w2)."""
    w1, w2 = position
    xs = np.array(x_range, dtype=np.float64)
    return xs, (w1 * scale) * xs + (w2 * scale)


def target_points(rng):
    """Noisy targets around y = 0, which the optimum (0, 0) fits."""
    xs = np.array(MODEL_POINTS_X)
    return xs, (rng.random(len(xs)) - 0.5) * 0.5


# ================================================================
#  Part 4 — Visualisation
# ================================================================

def visualize_descent(engine, save_path=None):
    """Contour map with the path, next to the loss curve."""
    x, y, z = surface_grid(engine.objective)
    xs, ys, zs = engine.trajectory_arrays()

    fig, axes = plt.subplots(1, 2, figsize=(12, 5))

    ax = axes[0]
    cs = ax.contourf(x, y, z, levels=40, cmap="viridis")
    plt.colorbar(cs, ax=ax, fraction=0.046, pad=0.04)
    ax.plot(xs, ys, color="yellow", lw=2, label="Trajectory")
    ax.scatter([xs[-1]], [ys[-1]], color="red", edgecolor="white",
               s=60, zorder=5, label="Current position")
    ax.set_title(f"{engine.objective.label}")
    ax.set_xlabel("w1")
    ax.set_ylabel("w2")
    ax.legend(fontsize=7)

    ax = axes[1]
    ax.plot(np.arange(len(zs)), zs)
    ax.set_title("Loss over iterations")
    ax.set_xlabel("Iteration")
    ax.set_ylabel("Loss")

    plt.suptitle(f"Gradient descent — lr={engine.learning_rate:g}, "
                 f"{engine.iteration} iterations",
                 fontsize=12, fontweight="bold")
    plt.tight_layout(rect=[0, 0, 1, 0.93])
    if save_path:
        plt.savefig(save_path, dpi=150, bbox_inches="tight")
        print(f"  Saved: {save_path}")
    plt.close(fig)


# ================================================================
#  Part 5 — Main Demo
# ================================================================

def main():
    print("=" * 62)
    print("  Descent — Gradient Descent on a Loss Surface")
    print("=" * 62)

    n_steps = 200
    for name in OBJECTIVES:
        engine = DescentEngine(objective=name, seed=0)
        x0, y0, z0 = engine.trajectory[0]
        print(f"\n  {engine.objective.label}")
        print(f"    start    : ({x0:.4f}, {y0:.4f})  loss {z0:.4f}")

        engine.start()
        for _ in range(n_steps):
            engine.step()
        x, y = engine.position
        print(f"    after {engine.iteration} steps (lr={engine.learning_rate:g}): "
              f"({x:.4f}, {y:.4f})  loss {engine.value:.4f}")

        visualize_descent(engine, save_path=f"descent_{name}.png")


if __name__ == "__main__":
    main()
