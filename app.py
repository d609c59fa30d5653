"""
Virtual Memory Thrashing Simulator: Streamlit dashboard

Interactive front end for the simulation engine. It only consumes what the
engine publishes (events on its EventBus and SimulationStats snapshots):
    - KPI dashboard (faults, swap traffic, hit ratio, disk I/O rate)
    - RAM frame map and swap block map, coloured by owning process
    - Thrashing gauge
    - Per-process statistics and the event timeline

Built with Streamlit for the web interface and Plotly for visualizations.
"""

# =============================================================================
# IMPORTS
# =============================================================================

import logging
import math
import time
from typing import Dict, List

import plotly.graph_objects as go            # Interactive plotting library
import streamlit as st                       # Web application framework

from engine import SimulationEngine
from errors import SimulationError
from events import EventLog
from policies import POLICIES
from scenarios import SCENARIOS, available_scenarios
from scheduler import PlaybackScheduler
from utils import slot_color

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# =============================================================================
# CHART HELPERS
# =============================================================================

def slot_grid(slots, engine: SimulationEngine, title: str) -> go.Figure:
    """
    Build a square heatmap-like grid for frames or disk blocks.

    Args:
        slots: Frames or DiskBlocks, each with ``id`` and ``page_id``
        engine (SimulationEngine): Engine owning the page arena
        title (str): Figure title

    Returns:
        go.Figure: Scatter of square markers, one per slot
    """
    processes = {p.id: p for p in engine.processes}
    cols = max(1, math.ceil(math.sqrt(len(slots))))
    x, y, colors, labels, hover = [], [], [], [], []
    for slot in slots:
        page = engine.pages.get(slot.page_id) if slot.page_id is not None else None
        x.append(slot.id % cols)
        y.append(-(slot.id // cols))
        colors.append(slot_color(page, processes))
        labels.append(page.label if page else "")
        hover.append(f"#{slot.id}: " + (f"{page.label} ({page.process_name})" if page else "Free"))

    fig = go.Figure(go.Scatter(
        x=x, y=y, mode="markers+text",
        marker=dict(symbol="square", size=28, color=colors, line=dict(width=1, color="#555")),
        text=labels,
        hovertext=hover, hoverinfo="text",
        textfont=dict(size=9),
    ))
    fig.update_layout(
        title=title, height=60 + 40 * math.ceil(len(slots) / cols), showlegend=False,
        xaxis=dict(visible=False), yaxis=dict(visible=False), margin=dict(l=10, r=10, t=40, b=10),
    )
    return fig


def thrashing_gauge(level: float, is_thrashing: bool) -> go.Figure:
    fig = go.Figure(go.Indicator(
        mode="gauge+number",
        value=level,
        number=dict(suffix="%"),
        title=dict(text="THRASHING" if is_thrashing else "Thrashing level"),
        gauge=dict(
            axis=dict(range=[0, 100]),
            bar=dict(color="crimson" if is_thrashing else "seagreen"),
            steps=[dict(range=[0, 60], color="#e8f5e9"), dict(range=[60, 100], color="#ffebee")],
        ),
    ))
    fig.update_layout(height=220, margin=dict(l=20, r=20, t=50, b=10))
    return fig


def new_engine(scenario_id: str):
    """Create an engine with an attached event log and playback scheduler."""
    engine = SimulationEngine()
    log = EventLog().attach(engine.events)
    engine.load_scenario(scenario_id)
    log.log(f"Scenario Loaded: {SCENARIOS[scenario_id].name}", "success")
    st.session_state.engine = engine
    st.session_state.event_log = log
    st.session_state.scheduler = PlaybackScheduler(engine)
    st.session_state.scenario_id = scenario_id
    st.session_state.history = []


def run_safely(action) -> None:
    try:
        stats = action()
    except SimulationError as e:
        st.error(str(e))
        return
    if stats is not None:
        st.session_state.history.append(stats)


# =============================================================================
# STREAMLIT UI - Web Application Interface
# =============================================================================

st.set_page_config(page_title="Virtual Memory Thrashing Simulator", layout="wide")
st.title("Virtual Memory Thrashing Simulator")

# -----------------------------------------------------------------------------
# SIDEBAR - Scenario and configuration
# -----------------------------------------------------------------------------

st.sidebar.header("Scenario")
scenario_ids = [s["id"] for s in available_scenarios()]
scenario_id = st.sidebar.selectbox(
    "Workload scenario",
    options=scenario_ids,
    format_func=lambda sid: SCENARIOS[sid].name,
)
st.sidebar.caption(SCENARIOS[scenario_id].description)

if "engine" not in st.session_state or st.session_state.scenario_id != scenario_id:
    new_engine(scenario_id)

engine: SimulationEngine = st.session_state.engine
event_log: EventLog = st.session_state.event_log
scheduler: PlaybackScheduler = st.session_state.scheduler

st.sidebar.markdown("---")
st.sidebar.header("Configuration")

ram_frames = st.sidebar.number_input("RAM frames", min_value=1, max_value=256, value=engine.config.ram_frames)
swap_blocks = st.sidebar.number_input("Swap blocks", min_value=1, max_value=512, value=engine.config.swap_blocks)
policy_names = list(POLICIES)
policy = st.sidebar.selectbox("Replacement policy", options=policy_names,
                              index=policy_names.index(engine.config.policy))
access_interval = st.sidebar.slider("Access interval (ms)", min_value=50, max_value=1000,
                                    value=engine.config.access_interval, step=50)

if st.sidebar.button("Apply configuration"):
    # Resizing pools or switching policy triggers a full reset inside the engine
    engine.update_config(ram_frames=int(ram_frames), swap_blocks=int(swap_blocks),
                         policy=policy, access_interval=int(access_interval))
    event_log.log(f"Configuration applied: {ram_frames} frames, {swap_blocks} blocks, {policy}", "success")
    st.session_state.history = []

st.sidebar.markdown("---")
st.sidebar.header("Workload")
intensity = st.sidebar.slider("Intensity (accesses per step)", min_value=0.5, max_value=5.0, value=1.0, step=0.5)
engine.set_intensity(intensity)
speed = st.sidebar.slider("Playback speed", min_value=0.1, max_value=10.0, value=1.0)
scheduler.set_speed(speed)

with st.sidebar.form("add_process"):
    st.write("Add process")
    proc_name = st.text_input("Name", value=f"Process {len(engine.processes) + 1}")
    proc_pages = st.number_input("Pages", min_value=1, max_value=128, value=8)
    proc_locality = st.slider("Locality", min_value=0.0, max_value=1.0, value=0.7)
    if st.form_submit_button("Add"):
        engine.add_process(proc_name, int(proc_pages), float(proc_locality))

# =============================================================================
# MAIN CONTENT AREA - Two Column Layout
# =============================================================================

col1, col2 = st.columns([1, 2])

with col1:
    st.subheader("Controls")
    run_steps = st.number_input("Steps per run", min_value=1, max_value=500, value=20)

    if st.button("Step Once"):
        run_safely(engine.step)

    if st.button("Burst"):
        run_safely(lambda: engine.burst(5))

    if st.button("Run"):
        # Drive the scheduler with the wall clock until the requested steps ran
        event_log.log("Simulation started")
        scheduler.play(time.monotonic() * 1000)
        done = 0
        while done < run_steps:
            now = time.monotonic() * 1000
            try:
                stats = scheduler.tick(now)
            except SimulationError as e:
                st.error(str(e))
                break
            if stats is not None:
                st.session_state.history.append(stats)
                done += 1
            else:
                time.sleep(0.01)
        scheduler.pause()
        event_log.log("Simulation paused")

    if st.button("Reset Simulation"):
        new_engine(scenario_id)
        st.session_state.event_log.log("Simulation reset")
        st.rerun()

    st.subheader("Event Log")
    for stamp, level, message in list(event_log.entries)[-20:][::-1]:
        st.write(f"`{stamp:%H:%M:%S}` {message}")

with col2:
    stats = engine.get_stats()

    # ----- KPI Dashboard -----
    k1, k2, k3, k4, k5, k6 = st.columns(6)
    k1.metric("Page Faults", stats.total_page_faults)
    k2.metric("Faults/s", f"{stats.page_faults_per_second:.1f}")
    k3.metric("Swap In", stats.swap_in_count)
    k4.metric("Swap Out", stats.swap_out_count)
    k5.metric("Disk I/O ops/s", f"{stats.disk_io_rate:.1f}")
    k6.metric("Hit Ratio", f"{stats.hit_ratio * 100:.1f}%")

    st.progress(min(1.0, stats.ram_utilization / 100),
                text=f"RAM {stats.ram_used}/{stats.ram_total}")
    st.progress(min(1.0, stats.swap_utilization / 100),
                text=f"Swap {stats.swap_used}/{stats.swap_total}")

    if stats.is_thrashing:
        st.error("THRASHING DETECTED: the system is spending more time swapping than executing")
    st.plotly_chart(thrashing_gauge(stats.thrashing_level, stats.is_thrashing), use_container_width=True)

    # ----- Memory maps -----
    st.plotly_chart(slot_grid(engine.get_frames(), engine, "RAM Frames"), use_container_width=True)
    st.plotly_chart(slot_grid(engine.swap.blocks, engine, "Swap Blocks"), use_container_width=True)

    # ----- History -----
    history: List = st.session_state.history
    if history:
        fig = go.Figure()
        times = [s.simulation_time for s in history]
        fig.add_trace(go.Scatter(x=times, y=[s.disk_io_rate for s in history], name="Disk I/O ops/s"))
        fig.add_trace(go.Scatter(x=times, y=[s.page_faults_per_second for s in history], name="Faults/s"))
        fig.add_hline(y=engine.config.thrashing_threshold, line_dash="dash", annotation_text="threshold")
        fig.update_layout(height=300, title="Swap activity over simulated time (ms)")
        st.plotly_chart(fig, use_container_width=True)

    # ----- Processes -----
    st.subheader("Processes")
    rows: List[Dict] = engine.get_process_stats()
    if rows:
        st.table(rows)
    else:
        st.write("No processes. Add one from the sidebar")

    st.caption(f"Policy: {stats.current_policy} · simulated time {stats.simulation_time} ms")
