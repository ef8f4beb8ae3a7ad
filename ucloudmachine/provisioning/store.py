"""On-disk machine state: one ``state.json`` per machine under the store path."""

import json
import logging
import os
from pathlib import Path

from ucloudmachine.provisioning.driver import machine_dir
from ucloudmachine.provisioning.errors import MissingInstanceError

logger = logging.getLogger(__name__)

STATE_FILE = "state.json"


def state_path(store_path, machine_name):
    return Path(machine_dir(store_path, machine_name)) / STATE_FILE


def save_machine_state(driver):
    """Write the driver's identifiers to its state file. Returns the path."""
    path = state_path(driver.store_path, driver.machine_name)
    os.makedirs(path.parent, exist_ok=True)
    path.write_text(json.dumps(driver.to_state(), indent=2) + "\n")
    logger.debug(f"Saved machine state to {path}")
    return path


def load_machine_state(store_path, machine_name):
    """Read the saved state for *machine_name*.

    Raises:
        MissingInstanceError: no state was saved for this machine.
    """
    path = state_path(store_path, machine_name)
    if not path.exists():
        raise MissingInstanceError(f"no saved state for machine '{machine_name}' in {path.parent}")
    return json.loads(path.read_text())


def delete_machine_state(store_path, machine_name):
    path = state_path(store_path, machine_name)
    if path.exists():
        path.unlink()
        logger.debug(f"Removed {path}")
