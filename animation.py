"""
Convolution — Manim Animation
=============================
Animated walk-through of the 1D and 2D sliding-window convolution.

Every number on screen comes from the engines in ``convolution.py``: the
kernel position from ``window()``, the math line from ``step_operands()``.

Render commands:
    python -m manim -ql  animation.py Convolution1DAnimation   (low quality, fast)
    python -m manim -qm  animation.py Convolution2DAnimation   (medium quality)
    python -m manim -qh  animation.py Convolution1DAnimation   (high quality)
"""

from manim import *

from convolution import format_breakdown, preset_1d, preset_2d

# ══════════════════════════════════════════════════════════════
#  Colors
# ══════════════════════════════════════════════════════════════

C_POS = "#3a86ff"
C_ZERO = "#d4dbe8"
C_NEG = "#ef476f"
C_KERNEL = "#fbc02d"
C_WINDOW = "#2196f3"
C_OUT = "#06d6a0"

STEP_TIME = 0.6

# ══════════════════════════════════════════════════════════════
#  Grid builder
# ══════════════════════════════════════════════════════════════


def cell_color(v):
    if v > 0:
        return C_POS
    if v < 0:
        return C_NEG
    return C_ZERO


def value_cell(val, cs=0.6, color=None, show_text=True):
    """Build a single square with a number inside."""
    sq = Square(side_length=cs, stroke_color=GRAY_B, stroke_width=1.5)
    sq.set_fill(color or cell_color(val), opacity=0.85)
    if not show_text:
        return VGroup(sq)
    t = Text(f"{val:g}", font_size=max(14, int(cs * 28)))
    t.set_color(WHITE if val != 0 else GRAY_C)
    t.move_to(sq)
    return VGroup(sq, t)


def build_grid(data, cs=0.5, show_text=True):
    """Create a centered grid of colored cells.

    Returns (VGroup containing all cells,
             cells[i][j] — each a VGroup(square, text)).
    """
    rows, cols = len(data), len(data[0])
    grp = VGroup()
    cells = []
    for i in range(rows):
        row = []
        for j in range(cols):
            cell = value_cell(data[i][j], cs, show_text=show_text)
            x = (j - (cols - 1) / 2) * cs
            y = ((rows - 1) / 2 - i) * cs
            cell.move_to([x, y, 0])
            grp.add(cell)
            row.append(cell)
        cells.append(row)
    return grp, cells


def build_row(values, cs=0.5, show_text=True):
    """Build a horizontal strip of cells (1xN grid)."""
    return build_grid([list(values)], cs, show_text)


def blank_row(n, cs=0.5):
    return build_grid([[0] * n], cs, show_text=False)


def math_line(engine, step, font_size=18):
    lines = format_breakdown(engine, step).splitlines()
    return VGroup(*[
        Text(line, font_size=font_size, color=WHITE) for line in lines
    ]).arrange(DOWN, buff=0.12, aligned_edge=LEFT)


# ══════════════════════════════════════════════════════════════
#  Shared scene helpers
# ══════════════════════════════════════════════════════════════


class StepScene(Scene):

    def setup(self):
        self.camera.background_color = "#0f0f1a"

    def wipe(self):
        if self.mobjects:
            self.play(*[FadeOut(m) for m in self.mobjects], run_time=0.4)

    def header(self, text, color=BLUE_B):
        h = Text(text, font_size=28, color=color, weight="BOLD")
        h.to_edge(UP, buff=0.35)
        self.play(FadeIn(h, shift=DOWN * 0.15), run_time=0.4)
        return h

    def fill_output(self, cell, value, cs):
        filled = value_cell(value, cs, color=C_OUT)
        filled.move_to(cell)
        self.play(Transform(cell, filled), run_time=0.3)


# ══════════════════════════════════════════════════════════════
#  1D
# ══════════════════════════════════════════════════════════════


class Convolution1DAnimation(StepScene):
    def construct(self):
        engine = preset_1d()
        cs = 0.7
        k = len(engine.kernel)

        self.header("1D Convolution: slide, multiply, sum")

        inp, inp_cells = build_row(engine.input.tolist(), cs)
        inp.shift(UP * 0.3)
        inp_lab = Text("input x", font_size=18, color=GRAY_B)
        inp_lab.next_to(inp, LEFT, buff=0.3)

        ker, _ = build_row(engine.kernel.tolist(), cs)
        ker.set_stroke(C_KERNEL, width=3)
        ker_lab = Text("kernel k", font_size=18, color=C_KERNEL)

        out, out_cells = blank_row(engine.total_steps, cs)
        out.shift(DOWN * 1.6)
        out_lab = Text("output y", font_size=18, color=GRAY_B)
        out_lab.next_to(out, LEFT, buff=0.3)

        self.play(FadeIn(inp), FadeIn(inp_lab), run_time=0.6)
        self.play(FadeIn(out), FadeIn(out_lab), run_time=0.6)

        def kernel_target(step):
            start, stop = engine.window(step)
            span = VGroup(*inp_cells[0][start:stop])
            return span.get_center() + UP * (cs + 0.35)

        ker.move_to(kernel_target(0))
        ker_lab.next_to(ker, LEFT, buff=0.3)
        self.play(FadeIn(ker), FadeIn(ker_lab), run_time=0.5)

        frame = SurroundingRectangle(
            VGroup(*inp_cells[0][0:k]), color=C_WINDOW, buff=0.04)
        self.play(Create(frame), run_time=0.3)

        math = math_line(engine, 0)
        math.to_edge(DOWN, buff=0.5)
        self.play(FadeIn(math), run_time=0.3)

        for step in range(engine.total_steps):
            engine.set_step(step)
            start, stop = engine.window()
            if step > 0:
                new_math = math_line(engine, step)
                new_math.to_edge(DOWN, buff=0.5)
                self.play(
                    ker.animate.move_to(kernel_target(step)),
                    frame.animate.become(SurroundingRectangle(
                        VGroup(*inp_cells[0][start:stop]),
                        color=C_WINDOW, buff=0.04)),
                    Transform(math, new_math),
                    run_time=STEP_TIME,
                )
            ops = engine.step_operands()
            self.fill_output(out_cells[0][step], ops.total, cs)

        self.wait(1.5)
        self.wipe()


# ══════════════════════════════════════════════════════════════
#  2D
# ══════════════════════════════════════════════════════════════


class Convolution2DAnimation(StepScene):
    def construct(self):
        engine = preset_2d()
        cs = 0.55

        self.header("2D Convolution: vertical edge detector")

        inp, inp_cells = build_grid(engine.input.tolist(), cs)
        inp.shift(LEFT * 4 + DOWN * 0.2)
        inp_lab = Text("input", font_size=18, color=GRAY_B)
        inp_lab.next_to(inp, UP, buff=0.2)

        ker, _ = build_grid(engine.kernel.tolist(), cs)
        ker.set_stroke(C_KERNEL, width=3)
        ker.shift(UP * 0.8)
        ker_lab = Text("kernel", font_size=18, color=C_KERNEL)
        ker_lab.next_to(ker, UP, buff=0.2)

        rows, cols = engine.out_shape
        out, out_cells = build_grid([[0] * cols for _ in range(rows)], cs,
                                    show_text=False)
        out.shift(RIGHT * 4 + DOWN * 0.2)
        out_lab = Text("output", font_size=18, color=GRAY_B)
        out_lab.next_to(out, UP, buff=0.2)

        self.play(
            FadeIn(inp), FadeIn(inp_lab),
            FadeIn(ker), FadeIn(ker_lab),
            FadeIn(out), FadeIn(out_lab),
            run_time=0.8,
        )

        def window_group(step):
            (r0, r1), (c0, c1) = engine.window(step)
            return VGroup(*[inp_cells[r][c]
                            for r in range(r0, r1) for c in range(c0, c1)])

        frame = SurroundingRectangle(window_group(0), color=C_WINDOW, buff=0.04)
        self.play(Create(frame), run_time=0.3)

        math = math_line(engine, 0, font_size=14)
        math.to_edge(DOWN, buff=0.4)
        self.play(FadeIn(math), run_time=0.3)

        for step in range(engine.total_steps):
            engine.set_step(step)
            if step > 0:
                new_math = math_line(engine, step, font_size=14)
                new_math.to_edge(DOWN, buff=0.4)
                self.play(
                    frame.animate.become(SurroundingRectangle(
                        window_group(step), color=C_WINDOW, buff=0.04)),
                    Transform(math, new_math),
                    run_time=STEP_TIME,
                )
            row, col = engine.position()
            self.fill_output(out_cells[row][col], engine.output[row, col].item(), cs)

        summary = Text(
            "Positive: bright-to-dark edge  ·  Negative: dark-to-bright edge",
            font_size=16, color=GRAY_B,
        )
        summary.next_to(out, DOWN, buff=0.3)
        self.play(FadeIn(summary), run_time=0.4)
        self.wait(1.5)
        self.wipe()
