"""Console output helpers shared by the offboarding steps."""

import sys


def log_info(msg):
    """Print info message."""
    print(f"[INFO] {msg}")


def log_warn(msg):
    """Print warning message."""
    print(f"[WARN] {msg}", file=sys.stderr)


def log_error(msg):
    """Print error message."""
    print(f"[ERROR] {msg}", file=sys.stderr)


def log_step(title):
    """Print a blank line followed by a step heading."""
    print()
    print(title)


def banner(*lines):
    """Print lines framed by '=' rules."""
    print("=" * 42)
    for line in lines:
        print(line)
    print("=" * 42)
