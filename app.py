"""
Interactive UI for the convolution and gradient-descent visualizers.

Run with:
    streamlit run app.py

Each rerun of this script is one animation frame: running drivers get a
chance to advance, then the page redraws and schedules the next rerun.
"""

import os
import time

import matplotlib.pyplot as plt
import numpy as np
import plotly.graph_objects as go
import streamlit as st

from convolution import (
    REGION_INPUT,
    REGION_OUTPUT,
    NO_STEP,
    format_breakdown,
    plot_step,
    preset_1d,
    preset_2d,
)
from descent import (
    OBJECTIVES,
    DEFAULT_LEARNING_RATE,
    DescentEngine,
    model_line,
    surface_grid,
    target_points,
)
from errors import VisualizerError
from logs import LOG_LEVEL_ENV, get_logger, setup_logging
from stepper import DEFAULT_SPEED, AnimationDriver, speed_to_cadence

FRAME_INTERVAL_S = 0.05

logger = get_logger(__name__)


def init_state():
    """Create one engine/driver set per browser session."""
    ss = st.session_state
    if "cnn" in ss:
        return
    cnn = {"1d": preset_1d(), "2d": preset_2d()}
    ss.cnn = cnn
    ss.cnn_drivers = {
        key: AnimationDriver.for_convolution(
            engine, cadence_ms=speed_to_cadence(DEFAULT_SPEED))
        for key, engine in cnn.items()
    }
    engine = DescentEngine()
    ss.descent = engine
    ss.descent_driver = AnimationDriver.for_descent(engine, cadence_ms=1.0)
    ss.model_targets = target_points(np.random.default_rng())
    logger.info("session initialised")


def report(exc):
    logger.warning("rejected: %s", exc)
    st.error(f"{type(exc).__name__}: {exc}")


# ================================================================
#  CNN tab
# ================================================================

def render_cnn_controls(key, engine, driver):
    c1, c2, c3, c4 = st.columns([1, 1, 1, 2])
    label = "Pause" if driver.is_running else "Play"
    if c1.button(label, key=f"play_{key}", type="primary"):
        if not driver.is_running and engine.is_last_step():
            engine.set_step(0)
        driver.toggle()
    if c2.button("Reset", key=f"reset_{key}"):
        driver.stop()
        engine.set_step(0)
    step_cols = c3.columns(2)
    if step_cols[0].button("◀", key=f"prev_{key}"):
        driver.stop()
        engine.set_step(engine.step - 1)
    if step_cols[1].button("▶", key=f"next_{key}"):
        driver.stop()
        engine.set_step(engine.step + 1)
    speed = c4.slider("Speed", 1, 10, DEFAULT_SPEED, key=f"speed_{key}")
    driver.set_cadence(speed_to_cadence(speed))


def render_cell_picker(key, engine, driver):
    """Pick a cell in the input or output grid, like clicking the canvas."""
    with st.expander("Jump to a cell", expanded=False):
        region = st.radio(
            "Grid", [REGION_INPUT, REGION_OUTPUT], horizontal=True,
            key=f"region_{key}",
        )
        shape = engine.input.shape if region == REGION_INPUT else engine.out_shape
        cols = st.columns(len(shape))
        names = ["index"] if len(shape) == 1 else ["row", "col"]
        coord = [
            col.number_input(name, min_value=-1, max_value=int(n), value=0,
                             step=1, key=f"{region}_{name}_{key}")
            for col, name, n in zip(cols, names, shape)
        ]
        if st.button("Go", key=f"pick_{key}"):
            try:
                step = engine.map_coordinate_to_step(region, coord)
            except VisualizerError as exc:
                report(exc)
                return
            if step is NO_STEP:
                st.warning("That cell is outside the grid.")
            else:
                driver.stop()
                engine.set_step(step)


def render_cnn(key):
    engine = st.session_state.cnn[key]
    driver = st.session_state.cnn_drivers[key]

    render_cnn_controls(key, engine, driver)
    render_cell_picker(key, engine, driver)

    st.caption(f"Step: {engine.step + 1} / {engine.total_steps}")
    fig = plot_step(engine)
    st.pyplot(fig, use_container_width=True)
    plt.close(fig)

    pos = engine.position()
    target = f"y[{pos}]" if engine.ndim == 1 else f"y[{pos[0]},{pos[1]}]"
    st.markdown(f"**Step {engine.step + 1}:** calculate output `{target}`")
    st.code(format_breakdown(engine), language=None)


# ================================================================
#  Gradient-descent tab
# ================================================================

def descent_figure(engine):
    x, y, z = surface_grid(engine.objective)
    xs, ys, zs = engine.trajectory_arrays()

    fig = go.Figure()
    fig.add_trace(go.Surface(
        x=x, y=y, z=z, opacity=0.8, colorscale="Viridis", showscale=False,
        contours={"z": {"show": True, "usecolormap": True,
                        "highlightcolor": "#42f462", "project": {"z": True}}},
    ))
    fig.add_trace(go.Scatter3d(
        x=xs, y=ys, z=zs, mode="lines",
        line={"color": "yellow", "width": 4}, name="Trajectory",
    ))
    fig.add_trace(go.Scatter3d(
        x=[engine.x], y=[engine.y], z=[engine.value], mode="markers",
        marker={"size": 8, "color": "red",
                "line": {"color": "white", "width": 2}},
        name="Current Position",
    ))
    fig.update_layout(
        title="Loss Landscape",
        scene={
            "xaxis": {"title": "w1 (Weight 1)"},
            "yaxis": {"title": "w2 (Weight 2)"},
            "zaxis": {"title": "Loss"},
            "camera": {"eye": {"x": 1.5, "y": 1.5, "z": 1.5}},
        },
        uirevision=engine.objective.name,
        margin={"l": 0, "r": 0, "b": 0, "t": 50},
        height=560,
    )
    return fig


def model_figure(engine):
    px, py = st.session_state.model_targets
    lx, ly = model_line(engine.position)
    fig = go.Figure()
    fig.add_trace(go.Scatter(x=px, y=py, mode="markers", name="Target Data",
                             marker={"color": "blue", "size": 10}))
    fig.add_trace(go.Scatter(x=lx, y=ly, mode="lines", name="Model Prediction",
                             line={"color": "red", "width": 3}))
    fig.update_layout(
        title="Model Performance (Linear Regression)",
        xaxis={"title": "Input (x)", "range": [-2, 2]},
        yaxis={"title": "Output (y)", "range": [-5, 5]},
        margin={"l": 40, "r": 20, "b": 40, "t": 40},
        legend={"x": 0, "y": 1}, height=320,
    )
    return fig


def loss_figure(engine):
    fig = go.Figure(go.Scatter(y=engine.loss_history(), mode="lines", name="Loss"))
    fig.update_layout(
        title="Loss over Iterations",
        xaxis={"title": "Iteration"}, yaxis={"title": "Loss"},
        margin={"l": 40, "r": 20, "b": 40, "t": 40}, height=320,
    )
    return fig


def stop_descent(engine, driver):
    driver.stop()
    engine.stop()


def render_descent():
    engine = st.session_state.descent
    driver = st.session_state.descent_driver

    c1, c2, c3, c4 = st.columns([1.4, 1.4, 1, 1])
    names = list(OBJECTIVES)
    name = c1.selectbox(
        "Loss function", names, index=names.index(engine.objective.name),
        format_func=lambda n: OBJECTIVES[n].label,
    )
    if name != engine.objective.name:
        stop_descent(engine, driver)
        try:
            engine.select_objective(name)
        except VisualizerError as exc:
            report(exc)
        else:
            engine.reset(randomize=False)

    lr = c2.slider("Learning rate", 0.001, 0.1, DEFAULT_LEARNING_RATE,
                   step=0.001, format="%.3f")
    try:
        engine.set_learning_rate(lr)
    except VisualizerError as exc:
        report(exc)

    label = "Pause" if driver.is_running else ("Resume" if engine.iteration else "Start")
    if c3.button(label, type="primary"):
        if driver.is_running:
            stop_descent(engine, driver)
        else:
            engine.start()
            driver.start()
    if c4.button("Reset"):
        stop_descent(engine, driver)
        engine.reset(randomize=True)

    m1, m2, m3, m4 = st.columns(4)
    m1.metric("w1", f"{engine.x:.4f}")
    m2.metric("w2", f"{engine.y:.4f}")
    m3.metric("Loss", f"{engine.value:.4f}")
    m4.metric("Iteration", engine.iteration)

    st.plotly_chart(descent_figure(engine), use_container_width=True)
    left, right = st.columns(2)
    left.plotly_chart(model_figure(engine), use_container_width=True)
    right.plotly_chart(loss_figure(engine), use_container_width=True)


# ================================================================
#  Frame loop
# ================================================================

def all_drivers():
    ss = st.session_state
    return list(ss.cnn_drivers.values()) + [ss.descent_driver]


def advance_frame():
    """Let every running driver take its step for this frame."""
    now = time.monotonic() * 1000.0
    for driver in all_drivers():
        try:
            driver.on_frame(now)
        except VisualizerError as exc:
            driver.stop()
            report(exc)


def run():
    setup_logging(level=os.environ.get(LOG_LEVEL_ENV, "WARNING"), console=True)
    st.set_page_config(page_title="CNN & Gradient Descent", page_icon="##",
                       layout="wide")
    st.markdown(
        """
        <style>
          .block-container {padding-top: 1.4rem; padding-bottom: 1.4rem;}
          .stButton > button {
              width: 100%;
              border-radius: 10px;
              font-weight: 600;
          }
          [data-testid="stMetricValue"] {font-size: 1.45rem;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    init_state()
    advance_frame()

    st.title("Step-Through Visualizers")
    st.caption("Slide a kernel across an input, or roll a point down a loss surface.")

    tabs = st.tabs(["1D Convolution", "2D Convolution", "Gradient Descent"])
    with tabs[0]:
        render_cnn("1d")
    with tabs[1]:
        render_cnn("2d")
    with tabs[2]:
        render_descent()

    # Buttons above may have started a driver during this run.
    if any(d.is_running for d in all_drivers()):
        time.sleep(FRAME_INTERVAL_S)
        st.rerun()


if __name__ == "__main__":
    run()
