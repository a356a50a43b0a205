from __future__ import annotations

import socket
import uuid
from dataclasses import dataclass
from typing import Optional

_LOOPBACK_OR_ANY = {"0.0.0.0", "::", "127.0.0.1", "::1"}


@dataclass
class NetworkIdentity:
    """Network facts the Alpaca layer reports about this host."""

    configured_host: Optional[str] = None
    mac_override: Optional[int] = None

    def mac_address(self) -> str:
        node = self.mac_override if self.mac_override is not None else uuid.getnode()
        return ":".join(f"{(node >> shift) & 0xFF:02X}" for shift in range(40, -1, -8))

    def local_address(self) -> str:
        host = self.configured_host or "0.0.0.0"
        if host not in _LOOPBACK_OR_ANY:
            return host
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                # No packet is sent; connect() only selects the outbound interface.
                sock.connect(("8.8.8.8", 80))
                resolved = sock.getsockname()[0]
                if resolved and not resolved.startswith("127."):
                    return resolved
        except OSError:
            pass
        try:
            resolved = socket.gethostbyname(socket.gethostname())
            if resolved and not resolved.startswith("127."):
                return resolved
        except OSError:
            pass
        return "127.0.0.1"

    def unique_id(self) -> str:
        return "FPC_" + self.mac_address().replace(":", "")
