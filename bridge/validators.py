# check that an airrohr report has the fields the bridge needs

def require_keys(obj, keys):
    missing = [k for k in keys if k not in obj]
    return missing

def is_utf8(s):
    # json decoding lets lone surrogates such as "\ud800" through
    try:
        s.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True

def is_topic_level(s):
    """Non-empty text usable as one MQTT topic level."""
    if not isinstance(s, str) or not s or not is_utf8(s) or not s.isprintable():
        return False
    return "/" not in s and "+" not in s and "#" not in s

def is_id(s):
    if isinstance(s, bool):
        return False
    if isinstance(s, int):
        return s >= 0
    return is_topic_level(s)

def validate_channel(entry, idx):
    if not isinstance(entry, dict):
        return f"sensordatavalues[{idx}] must be an object"
    miss = require_keys(entry, ["value_type", "value"])
    if miss:
        return f"sensordatavalues[{idx}] missing fields: {', '.join(miss)}"
    if not is_topic_level(entry["value_type"]):
        return f"sensordatavalues[{idx}].value_type must be a non-empty printable string without / + #"
    value = entry["value"]
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        return f"sensordatavalues[{idx}].value must be a string or number"
    if isinstance(value, str) and not is_utf8(value):
        return f"sensordatavalues[{idx}].value must be valid UTF-8 text"
    return None

def validate_measurement(payload):
    if not isinstance(payload, dict):
        return "body must be a JSON object"
    miss = require_keys(payload, ["esp8266id", "software_version", "sensordatavalues"])
    if miss:
        return f"missing fields: {', '.join(miss)}"
    if not is_id(payload["esp8266id"]):
        return "esp8266id must be a non-empty printable string without / + #"
    if not isinstance(payload["software_version"], str) or not is_utf8(payload["software_version"]):
        return "software_version must be a UTF-8 string"
    values = payload["sensordatavalues"]
    if not isinstance(values, list):
        return "sensordatavalues must be a list"
    for idx, entry in enumerate(values):
        err = validate_channel(entry, idx)
        if err:
            return err
    return None
