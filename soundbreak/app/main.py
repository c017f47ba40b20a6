import logging
import signal
import sys
import threading

from soundbreak.shared.paths import ensure_app_dirs
from soundbreak.shared.store import ConfigStore
from soundbreak.core.logging_ import setup_logging
from soundbreak.core.monitor.engine import MonitoringEngine
from soundbreak.core.monitor.media import default_media_adapter
from soundbreak.core.monitor.process_detector import PsutilPresenceProbe

log = logging.getLogger(__name__)

STATUS_POLL_S = 3.0


def describe(status) -> str:
    meeting = "in meeting" if status.meeting.in_meeting else "no meeting"
    if status.music.is_playing:
        music = f"playing {status.music.track_label or '?'} on {status.music.player_name or '?'}"
    else:
        music = "not playing"
    return f"{status.status}: {meeting}, {music}, last action: {status.last_action or '-'}"


def main() -> None:
    ensure_app_dirs()
    setup_logging()

    store = ConfigStore()
    cfg = store.load()
    log.info("Loaded configuration from %s", store.path())

    engine = MonitoringEngine(PsutilPresenceProbe(), default_media_adapter(), cfg.to_monitor_config())
    engine.on_event(lambda evt: log.info("%s at %s (%s)", evt["type"], evt["at"], evt["action"]))
    engine.on_error(lambda msg: log.error("Monitor error: %s", msg))

    done = threading.Event()

    def signal_handler(sig, frame):
        log.info("Received signal %s, shutting down...", sig)
        done.set()

    signal.signal(signal.SIGINT, signal_handler)
    if hasattr(signal, "SIGTERM"):
        signal.signal(signal.SIGTERM, signal_handler)

    engine.start()
    last = None
    while not done.wait(STATUS_POLL_S):
        line = describe(engine.get_status())
        if line != last:
            log.info(line)
            last = line

    engine.stop()
    engine.join(timeout=10.0)
    sys.exit(0)


if __name__ == "__main__":
    main()
