"""
Prometheus text exposition of a collector registry.
"""

from typing import BinaryIO

from prometheus_client import CollectorRegistry, CONTENT_TYPE_LATEST, generate_latest

CONTENT_TYPE = CONTENT_TYPE_LATEST


def render_exposition(registry: CollectorRegistry) -> bytes:
    """Render every family and sample in the registry.

    An empty registry renders as an empty document.
    """
    return generate_latest(registry)


def write_exposition(registry: CollectorRegistry, output: BinaryIO, close: bool = False) -> int:
    """Write the exposition to a binary stream and return the bytes written.

    The stream is flushed on every exit path, and closed as well when
    ``close`` is set.
    """
    try:
        payload = render_exposition(registry)
        output.write(payload)
        return len(payload)
    finally:
        try:
            output.flush()
        finally:
            if close:
                output.close()
