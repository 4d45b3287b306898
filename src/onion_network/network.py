import socket
import time

from .config import BASE_ONION_ROUTER_PORT, BASE_USER_PORT, HOST, REGISTRY_PORT
from .directory import Registry
from .logger import component_logger
from .relay import OnionRouter
from .user import User

_log = component_logger("Network")


def find_free_port():
    s = socket.socket()
    s.bind(("", 0))
    port = s.getsockname()[1]
    s.close()
    return port


def find_free_port_block(count, host=HOST, attempts=50):
    """Returns a base port such that ``base .. base + count - 1`` can all be bound."""
    for _ in range(attempts):
        base = find_free_port()
        if base + count > 65535:
            continue
        sockets = []
        try:
            for port in range(base, base + count):
                s = socket.socket()
                sockets.append(s)
                s.bind((host, port))
            return base
        except OSError:
            continue
        finally:
            for s in sockets:
                s.close()
    raise OSError(f"Could not find {count} consecutive free ports")


def launch_network(nb_nodes, nb_users, host=HOST, registry_port=REGISTRY_PORT,
                   base_router_port=BASE_ONION_ROUTER_PORT, base_user_port=BASE_USER_PORT,
                   fallback_destination=None, settle_delay=0.0):
    """Starts the registry, then ``nb_nodes`` routers, then ``nb_users`` users.

    Returns every started service, registry first. On failure the services
    already running are shut down before the error propagates.
    """
    services = []
    try:
        registry = Registry(port=registry_port, host=host).start()
        services.append(registry)
        time.sleep(settle_delay)

        for node_id in range(nb_nodes):
            router = OnionRouter(node_id, host=host, base_port=base_router_port,
                                 registry_port=registry_port,
                                 fallback_destination=fallback_destination)
            services.append(router.start())
        time.sleep(settle_delay)

        for user_id in range(nb_users):
            user = User(user_id, host=host, base_port=base_user_port,
                        base_router_port=base_router_port, registry_port=registry_port)
            services.append(user.start())
        time.sleep(settle_delay)
    except Exception as e:
        _log("LAUNCH_ERROR", f"Error launching network: {type(e).__name__} - {e}")
        shutdown_network(services)
        raise

    _log("LAUNCH", f"Network up: registry on {registry_port}, {nb_nodes} router(s), {nb_users} user(s)")
    return services


def shutdown_network(services):
    for service in reversed(services):
        service.stop()
