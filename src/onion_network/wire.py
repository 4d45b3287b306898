import math

from .errors import MalformedLayerError
from .key_codec import RSA_KEY_SIZE

# Base64 length of one RSA ciphertext: 256 bytes -> 344 characters
WRAPPED_KEY_LENGTH = 4 * math.ceil((RSA_KEY_SIZE // 8) / 3)
DESTINATION_HEADER_WIDTH = 10
MAX_DESTINATION = 10 ** DESTINATION_HEADER_WIDTH - 1
MAX_MESSAGE_LENGTH = 10000


# Renders a next-hop port as the fixed-width header
def format_destination(port: int) -> str:
    if isinstance(port, bool) or not isinstance(port, int):
        raise MalformedLayerError(f"Destination must be an integer, got {port!r}")
    if port < 0 or port > MAX_DESTINATION:
        raise MalformedLayerError(f"Destination {port} does not fit in {DESTINATION_HEADER_WIDTH} digits")
    return str(port).zfill(DESTINATION_HEADER_WIDTH)


# Parses a fixed-width header back into a port
def parse_destination(header: str) -> int:
    if (len(header) != DESTINATION_HEADER_WIDTH
            or not header.isascii() or not header.isdigit()):
        raise MalformedLayerError(f"Destination header {header!r} is not {DESTINATION_HEADER_WIDTH} decimal digits")
    return int(header)


# Builds the plaintext that gets symmetric-encrypted for one hop
def create_header(destination: int, payload: str) -> str:
    return format_destination(destination) + payload


# Splits decrypted hop plaintext into (destination, remaining payload)
def split_header(plaintext: str):
    if len(plaintext) < DESTINATION_HEADER_WIDTH:
        raise MalformedLayerError(
            f"Decrypted payload is {len(plaintext)} chars, shorter than the {DESTINATION_HEADER_WIDTH}-char header")
    destination = parse_destination(plaintext[:DESTINATION_HEADER_WIDTH])
    return destination, plaintext[DESTINATION_HEADER_WIDTH:]


# Creates a layer: wrapped key followed by the encrypted payload
def create_layer(wrapped_key: str, cipher_payload: str) -> str:
    if len(wrapped_key) != WRAPPED_KEY_LENGTH:
        raise MalformedLayerError(
            f"Wrapped key is {len(wrapped_key)} chars, expected {WRAPPED_KEY_LENGTH}")
    return wrapped_key + cipher_payload


# Parses a layer into (wrapped key, encrypted payload)
def split_layer(layer: str):
    if not isinstance(layer, str):
        raise MalformedLayerError(f"Layer must be text, got {type(layer).__name__}")
    if len(layer) < WRAPPED_KEY_LENGTH:
        raise MalformedLayerError(
            f"Layer is {len(layer)} chars, shorter than the {WRAPPED_KEY_LENGTH}-char wrapped key")
    return layer[:WRAPPED_KEY_LENGTH], layer[WRAPPED_KEY_LENGTH:]


def truncate_message(message: str, limit: int = MAX_MESSAGE_LENGTH) -> str:
    return message if len(message) <= limit else message[:limit]
