import itertools
import logging
import time
from configparser import ConfigParser, SectionProxy
from pathlib import Path
from typing import Callable, Optional

from .client import DeviceClient
from .protocol import LinkError, ProtocolError

logger = logging.getLogger(__name__)

DEVICE_NAME = "default"
CONFIG_FILE = Path("terminal.ini")

DEFAULT_INTERVAL = 10.0  # seconds
DEFAULT_QR_EVERY = 10


def tick(client: DeviceClient, iteration: int, qr_code_data: str, qr_every: int) -> bool:
    try:
        if iteration % qr_every == 0:
            client.show_qr(qr_code_data)
        else:
            client.disable()
    except (LinkError, ProtocolError) as e:
        logger.warning(f"Iteration {iteration} failed: {e.__class__.__name__}: {e}")
        client.disconnect()
        return False

    logger.debug(f"Iteration {iteration} completed, connected: {client.is_connected}")
    return True


def run(
    config: SectionProxy,
    client: Optional[DeviceClient] = None,
    iterations: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
):
    interval = config.getfloat("interval", fallback=DEFAULT_INTERVAL)
    qr_every = config.getint("qr_every", fallback=DEFAULT_QR_EVERY)
    qr_code_data = config["qr_data"]

    if qr_every < 1:
        raise ValueError(f"qr_every must be positive, got {qr_every}")

    if client is None:
        client = DeviceClient(host=config["host"], port=config.getint("port"))

    counter = itertools.count() if iterations is None else range(iterations)

    with client:
        for iteration in counter:
            tick(client, iteration, qr_code_data, qr_every)
            sleep(interval)


def main():
    logging.basicConfig(level=logging.DEBUG)

    config = ConfigParser()

    if not CONFIG_FILE.exists():
        config[DEVICE_NAME] = {
            "host": "192.168.0.12",
            "port": "62801",
            "interval": str(DEFAULT_INTERVAL),
            "qr_data": "1234567890abcdeABCDEqr",
            "qr_every": str(DEFAULT_QR_EVERY),
        }

        with open(CONFIG_FILE, "w") as fp:
            config.write(fp)

        logger.info(f"Wrote configuration template to {CONFIG_FILE}, edit it and run again")
        return

    config.read(CONFIG_FILE)

    try:
        run(config[DEVICE_NAME])
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")


if __name__ == "__main__":
    main()
