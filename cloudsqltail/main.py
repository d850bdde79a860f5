"""Entry point for cloudsqltail."""

import logging
import signal
import sys

from cloudsqltail.bridge import LogTailBridge
from cloudsqltail.config import ConfigError, load_config
from cloudsqltail.source import PubSubSource, SubscriptionError


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    try:
        config = load_config(argv)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return 1

    logging.getLogger().setLevel(config.log_level)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    try:
        source = PubSubSource(config.project, config.subscription, config.recv_routines)
    except SubscriptionError as exc:
        print(exc, file=sys.stderr)
        return 1

    bridge = LogTailBridge(config, source)

    def signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        bridge.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(
        "Starting cloudsqltail — subscription=%s, recv_routines=%d, flush_interval=%.3fs",
        source.subscription_path, config.recv_routines, config.flush_interval,
    )
    return bridge.run()


if __name__ == "__main__":
    sys.exit(main())
