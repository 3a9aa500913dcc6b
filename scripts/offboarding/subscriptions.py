"""
Filter entries out of the Argo CD notifications `subscriptions` field.

The field is a YAML list stored as a string in argocd-notifications-cm.
Each entry starts with a `- recipients:` line at column 0:

    - recipients:
      - webhook-123456
      triggers:
      - on-deployed
      selector: configenvrepoid=123456

Entries are handled as opaque text blocks rather than parsed YAML so that
every entry we keep is written back exactly as it was read.
"""

import re
from typing import Iterable, List, Optional, Union

SUBSCRIPTION_MARKER = "- recipients:"

# Lines end at "\n" only; other separators (\f, \u2028, lone \r) are content
_LINE = re.compile(r"[^\n]*\n|[^\n]+\Z")


def _is_marker(line: str) -> bool:
    return line.startswith(SUBSCRIPTION_MARKER)


def _split(text: str):
    """Split text into (leading lines, blocks) where each block is a list of lines."""
    leading: List[str] = []
    blocks: List[List[str]] = []
    for line in _LINE.findall(text):
        if _is_marker(line):
            blocks.append([line])
        elif blocks:
            blocks[-1].append(line)
        else:
            leading.append(line)
    return leading, blocks


def filter_subscriptions(
    text: Optional[str],
    targets: Union[str, Iterable[str]],
) -> str:
    """Return `text` without the subscription blocks that contain any target.

    Matching is substring containment against the whole block. Lines before
    the first marker are passed through. Blocks that do not match are kept
    byte for byte and in their original order.
    """
    if not text:
        return ""
    if isinstance(targets, str):
        targets = [targets]
    targets = [t for t in targets if t]

    leading, blocks = _split(text)
    out = list(leading)
    for block in blocks:
        body = "".join(block)
        if any(t in body for t in targets):
            continue
        out.append(body)
    return "".join(out)


def count_blocks(text: Optional[str]) -> int:
    """Number of subscription blocks in `text`."""
    if not text:
        return 0
    return len(_split(text)[1])
