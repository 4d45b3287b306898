import os


def _env_int(name, default):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name, default):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


HOST = os.environ.get("ONION_HOST", "127.0.0.1")

REGISTRY_PORT = _env_int("ONION_REGISTRY_PORT", 8080)
BASE_ONION_ROUTER_PORT = _env_int("ONION_BASE_ROUTER_PORT", 4000)
BASE_USER_PORT = _env_int("ONION_BASE_USER_PORT", 3000)

# Where a relay sends whatever it could not peel
FALLBACK_DESTINATION = _env_int("ONION_FALLBACK_DESTINATION", BASE_ONION_ROUTER_PORT + 1)

# Seconds; 0 disables the timeout and lets a hung hop block forever
REQUEST_TIMEOUT = _env_float("ONION_REQUEST_TIMEOUT", 20.0)

CIRCUIT_LENGTH = _env_int("ONION_CIRCUIT_LENGTH", 3)
