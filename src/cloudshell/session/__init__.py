"""Interactive SSH sessions on the environment.

- :class:`InteractiveSession` -- PTY shell with terminal I/O relay.
- :class:`PortForward` -- local TCP listeners tunnelled over the session.
"""

from cloudshell.session.forward import PortForward
from cloudshell.session.interactive import InteractiveSession

__all__ = ["InteractiveSession", "PortForward"]
