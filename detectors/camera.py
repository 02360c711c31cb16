from threading import Lock

from errors import CameraAccessDenied, CapabilityLost


class WebRtcCamera:
    """Latest-frame buffer fed by the streamlit-webrtc video callback.

    The callback runs on a worker thread, the monitor reads on the event loop,
    so every access goes through the lock.
    """

    def __init__(self):
        self._lock = Lock()
        self._frame = None
        self._opened = False
        self.frames_received = 0

    def push(self, frame_bgr):
        with self._lock:
            self._frame = frame_bgr
            self.frames_received += 1

    def open(self):
        with self._lock:
            if self._frame is None:
                raise CameraAccessDenied(
                    "Camera access denied or no video yet. Allow camera permissions and press START."
                )
            self._opened = True

    def read(self):
        with self._lock:
            if not self._opened:
                raise CapabilityLost("camera has been released")
            return self._frame

    def release(self):
        with self._lock:
            self._opened = False
            self._frame = None

    @property
    def is_open(self) -> bool:
        return self._opened
