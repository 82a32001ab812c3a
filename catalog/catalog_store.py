# read JSON definition files with thread safety

import json
import threading

_FILE_LOCK = threading.Lock()


def read_json(path):
    with _FILE_LOCK:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)


def read_json_object(path):
    """Read a JSON file whose top level must be an object."""
    data = read_json(path)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a JSON object, got {type(data).__name__}")
    return data
