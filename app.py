import asyncio
import logging
import threading
import time

import streamlit as st

st.set_page_config(page_title="AI Exam Proctor (YOLO + dlib landmarks)", layout="wide")

try:
    import av
    import cv2
    from streamlit_webrtc import WebRtcMode, webrtc_streamer
except Exception as e:
    st.title("AI-Powered Exam Proctoring")
    st.error("Dependency import failed. Please check the build logs.")
    st.code(str(e))
    st.info("Try opencv-python-headless, streamlit-webrtc and av pinned to the versions in pyproject.toml.")
    st.stop()

from config import MonitorConfig
from detectors.camera import WebRtcCamera
from detectors.face_landmarks import DlibFaceLandmarker
from detectors.yolo_objects import YoloObjectDetector
from errors import CameraAccessDenied, CapabilityUnavailable, ProctorError
from session import SessionController

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

SEVERITY_COLORS = {"critical": "#ef4444", "high": "#f97316", "medium": "#eab308"}

st.title("AI-Powered Exam Proctoring")
st.caption("Webcam -> YOLO (objects, people) -> dlib (68 landmarks) -> head pose -> rule engine -> violation log")


@st.cache_resource
def load_runtime():
    """One event loop thread and one controller per server process."""
    config = MonitorConfig.from_env()
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, name="proctor-loop", daemon=True).start()

    camera = WebRtcCamera()
    controller = SessionController(
        YoloObjectDetector(weights=config.yolo_weights, conf=config.yolo_conf),
        DlibFaceLandmarker(predictor_path=config.landmark_model),
        camera,
        config,
    )
    asyncio.run_coroutine_threadsafe(controller.load(), loop)
    return loop, camera, controller


loop, camera, controller = load_runtime()
t = controller.config.thresholds

# cache_resource only runs the loader once; a failed load is retried here on rerun
if not (controller.objects_ready and controller.faces_ready) and not controller.loading:
    asyncio.run_coroutine_threadsafe(controller.load(), loop)

if "camera_requested" not in st.session_state:
    st.session_state.camera_requested = False


def call(coro_or_fn, timeout=15):
    """Run something on the monitor loop and wait for its result."""
    async def _run():
        result = coro_or_fn()
        if asyncio.iscoroutine(result):
            result = await result
        return result
    return asyncio.run_coroutine_threadsafe(_run(), loop).result(timeout=timeout)


def format_uptime(seconds):
    hrs, rem = divmod(int(seconds), 3600)
    mins, secs = divmod(rem, 60)
    return f"{hrs:02d}:{mins:02d}:{secs:02d}"


st.sidebar.header("Policy")
st.sidebar.write(f"Analysis every {controller.config.analysis_interval:.0f}s")
st.sidebar.write(f"Detection confidence > {t.detection_confidence}")
st.sidebar.write(f"Looking away after {t.looking_away_seconds}s")
st.sidebar.write("Re-arm after firing: " + ("yes" if t.rearm_after_fire else "no"))
st.sidebar.markdown("---")
st.sidebar.info("Ethics: Local processing only. Show 'AI Monitoring Active'.")

st.markdown("### AI Monitoring Active (Local Processing Only)")

colA, colB = st.columns([2, 1])


def video_frame_callback(frame: av.VideoFrame) -> av.VideoFrame:
    img = frame.to_ndarray(format="bgr24")
    camera.push(img.copy())

    detection = controller.detection
    if detection is not None:
        color = (0, 200, 0) if detection.status.value == "clear" else (0, 0, 255)
        cv2.putText(img, f"Persons: {detection.people_count}", (10, 28), cv2.FONT_HERSHEY_SIMPLEX, 0.85, color, 2)
        if detection.head_pose is not None:
            cv2.putText(
                img,
                f"Gaze: {detection.head_pose.direction.value}",
                (10, 56),
                cv2.FONT_HERSHEY_SIMPLEX,
                0.75,
                color,
                2,
            )
        cv2.putText(img, detection.status.value.upper(), (10, 84), cv2.FONT_HERSHEY_SIMPLEX, 0.75, color, 2)
    return av.VideoFrame.from_ndarray(img, format="bgr24")


with colA:
    start_col, stop_col = st.columns(2)
    if start_col.button("Start monitoring", use_container_width=True):
        st.session_state.camera_requested = True
    if stop_col.button("Stop monitoring", use_container_width=True):
        st.session_state.camera_requested = False
        call(controller.stop)

    # the stream follows the buttons, so Stop also ends the capture
    webrtc_ctx = webrtc_streamer(
        key="ai-proctor-monitor",
        mode=WebRtcMode.SENDRECV,
        rtc_configuration={
            "iceServers": [
                {"urls": ["stun:stun.l.google.com:19302"]},
                {"urls": ["stun:stun1.l.google.com:19302"]},
            ]
        },
        media_stream_constraints={
            "video": {
                "facingMode": "user",
                "width": {"ideal": controller.config.capture_width},
                "height": {"ideal": controller.config.capture_height},
            },
            "audio": False,
        },
        video_frame_callback=video_frame_callback,
        async_processing=True,
        desired_playing_state=st.session_state.camera_requested,
    )

stats_box = colB.empty()
pose_box = colB.empty()
logs_box = colB.empty()
detections_box = colA.empty()


def render(snap):
    with stats_box.container():
        if snap.error:
            st.error(snap.error)
        if not (snap.objects_ready and snap.faces_ready):
            pending = "loading" if snap.loading else "not loaded"
            st.info(
                f"Object detector: {'ready' if snap.objects_ready else pending}  |  "
                f"Face landmarks: {'ready' if snap.faces_ready else pending}"
            )
        c1, c2, c3, c4 = st.columns(4)
        c1.metric("Uptime", format_uptime(snap.stats.uptime_seconds))
        c2.metric("Scans", snap.stats.scans, help="analyzing" if snap.analyzing else None)
        c3.metric("Looking away", snap.stats.looking_away_events)
        c4.metric("Violations", snap.stats.violations)
        if snap.detection is None:
            st.info(f"State: {snap.state}")
        elif snap.detection.status.value == "clear":
            st.success("CLEAR")
        else:
            st.error("VIOLATION")

    with pose_box.container():
        st.markdown("### Head Pose")
        pose = snap.detection.head_pose if snap.detection else None
        if pose is None:
            st.write("No head-pose data")
        else:
            st.write(pose.direction.value)
            if pose.face_detected:
                st.caption(
                    f"h={pose.horizontal_deviation:.2f}  v={pose.vertical_deviation:.2f}  "
                    f"conf={pose.confidence:.2f}  away for {snap.debounce.consecutive_looking_away_seconds}s"
                )

    with detections_box.container():
        st.markdown("### Detections")
        if snap.detection and snap.detection.raw_detections:
            for d in snap.detection.raw_detections:
                st.write(f"{d.label} {round(d.score * 100)}%")
        else:
            st.write("Nothing above threshold")

    with logs_box.container():
        st.markdown("### Recent Violations")
        if not snap.violations:
            st.code("No violations yet")
        for v in snap.violations:
            color = SEVERITY_COLORS.get(v.severity.value, "#eab308")
            st.markdown(
                f"<span style='color:{color}'>[{v.severity.value.upper()}]</span> {v.timestamp} {v.type}",
                unsafe_allow_html=True,
            )


if webrtc_ctx.state.playing and st.session_state.camera_requested:
    started = False
    while webrtc_ctx.state.playing and st.session_state.camera_requested:
        if not started:
            try:
                call(controller.start)
                started = True
            except (CameraAccessDenied, CapabilityUnavailable):
                pass  # no frame from the browser yet, or models still loading
            except ProctorError as e:
                st.session_state.start_error = str(e)
                st.session_state.camera_requested = False
                break
        snap = call(controller.snapshot)
        render(snap)
        if started and snap.state != "monitoring":
            # stopped underneath us (camera lost)
            st.session_state.camera_requested = False
            break
        time.sleep(0.5)
    call(controller.stop)
    # the browser ended the stream, or one of the breaks above
    st.session_state.camera_requested = False
    st.rerun()
else:
    render(call(controller.snapshot))
    if st.session_state.get("start_error"):
        st.error(st.session_state.pop("start_error"))
    if st.session_state.camera_requested:
        st.info("Waiting for webcam permission...")
    else:
        st.info("Press Start monitoring to begin.")
