import sys
import time

from onion_network.errors import OnionNetworkError
from onion_network.network import launch_network, shutdown_network
from onion_network.relay import OnionRouter
from onion_network.user import User


def ask_int(prompt, lower=None, upper=None):
    """Prompts until the answer parses as an int inside [lower, upper]."""
    bounds = f"{'-inf' if lower is None else lower}..{'inf' if upper is None else upper}"
    while True:
        answer = input(prompt).strip()
        if not answer.lstrip("-").isdigit():
            print(f"  '{answer}' is not a whole number.")
            continue
        value = int(answer)
        if (lower is None or value >= lower) and (upper is None or value <= upper):
            return value
        print(f"  {value} is outside {bounds}.")


def display_routers(routers):
    """Shows what each router saw last."""
    print("\nRouter diagnostics:")
    for router in routers:
        decrypted = router.last_received_decrypted_message
        preview = "(none)" if decrypted is None else f"{len(decrypted)} chars"
        print(f"  Router {router.node_id} @ {router.port}: "
              f"last destination={router.last_message_destination}, last payload={preview}")


def main():
    """Main function to run the interactive onion network."""
    print("--- Interactive Onion Network ---")
    num_relays = ask_int("How many onion routers to start? ", lower=1)
    num_users = ask_int("How many users to start? ", lower=2)

    try:
        services = launch_network(num_relays, num_users, settle_delay=0.2)
    except (OSError, OnionNetworkError) as e:
        print(f"Error starting the network: {e}")
        sys.exit(1)

    routers = [s for s in services if isinstance(s, OnionRouter)]
    users = [s for s in services if isinstance(s, User)]
    print(f"\nStarted {len(routers)} routers and {len(users)} users. Ctrl+C to exit.")

    try:
        while True:
            sender = ask_int(f"\nSender user id [0-{num_users - 1}]: ", 0, num_users - 1)
            recipient = ask_int(f"Recipient user id [0-{num_users - 1}]: ", 0, num_users - 1)
            message = input("Message: ")
            try:
                circuit = users[sender].send_message(message, recipient)
            except OnionNetworkError as e:
                print(f"FAILURE: {type(e).__name__}: {e}")
                continue
            time.sleep(0.1)
            print(f"Circuit: {' -> '.join(str(n['nodeId']) for n in circuit)}")
            print(f"User {recipient} last received: {users[recipient].last_received_message!r}")
            display_routers(routers)
    except (KeyboardInterrupt, EOFError):
        print("\nExiting...")
    finally:
        shutdown_network(services)


if __name__ == "__main__":
    main()
