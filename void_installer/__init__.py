"""Void Linux installer (Python-first, step-driven).

Core design goals:
- One immutable install configuration, collected once
- Fixed storage layering (encryption, volume manager, filesystem)
- Typed renderers for every generated file
- Mounts and activations released in reverse order on any exit
- Centralized logging
"""

__all__ = []
