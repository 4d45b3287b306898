import threading


def ansi(code):
    return f"\033[{code}m"


RESET = ansi(0)
ERROR_COLOR = ansi(91)
WARN_COLOR = ansi(31)
DEFAULT_COLOR = ansi(36)

# Component palette: the basic and bright foreground colors (minus red, kept
# for errors) followed by a few from the 256-color table
PALETTE = (
    [ansi(code) for code in (34, 32, 33, 35, 36)]
    + [ansi(code) for code in (94, 92, 93, 95, 96)]
    + [ansi(f"38;5;{code}") for code in (208, 213, 45, 220)]
)

# Levels whose tag suffix forces a color regardless of the component's own
ACTION_COLORS = {
    "ERROR": ERROR_COLOR,
    "WARN": WARN_COLOR,
}

_print_lock = threading.Lock()
_color_counter = 0
_color_counter_lock = threading.Lock()


def next_color():
    """Hands out component colors round-robin."""
    global _color_counter
    with _color_counter_lock:
        color = PALETTE[_color_counter % len(PALETTE)]
        _color_counter += 1
    return color


def colored_log(tag: str, message: str, color: str = DEFAULT_COLOR):
    """Prints a colored log message."""
    with _print_lock:
        print(f"{color}{tag} {message}{RESET}", flush=True)


def component_logger(name: str, color: str = None):
    """Returns a ``log(action, msg)`` callable tagged with the component name."""
    color = color or next_color()

    def log(action, msg):
        action_color = color
        for suffix, override in ACTION_COLORS.items():
            if action.endswith(suffix):
                action_color = override
                break
        colored_log(f"[{name}][{action}]", msg, action_color)

    return log
