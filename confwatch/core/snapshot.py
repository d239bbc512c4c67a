"""Full flattened reads of the cached tree."""

from __future__ import annotations

import logging
from typing import Dict, Optional

from .errors import GateInterrupted
from .gate import InitializationGate
from .keys import join_path, path_to_key
from .source import TreeClient

logger = logging.getLogger(__name__)


class SnapshotReader:
    """Build a key/value snapshot from the backend's current cached tree.

    The tree below the root is assumed to be exactly two levels deep
    (``<root>/<service>/<rule>``). Nodes directly under the root and nodes
    below the second level are not part of the snapshot.
    """

    def __init__(
        self,
        client: TreeClient,
        root_path: str,
        gate: InitializationGate,
        encoding: str = "utf-8",
    ):
        self.client = client
        self.root_path = root_path
        self.gate = gate
        self.encoding = encoding

    def get_current_data(self, timeout: Optional[float] = None) -> Dict[str, str]:
        """Read every second-level node below the root.

        Waits for the initial sync first. If that wait is interrupted or
        times out, the read still happens and may return a partial tree.

        Args:
            timeout: Seconds to wait for the initial sync, None for no limit.

        Returns:
            Mapping of logical key to decoded value.
        """
        logger.debug("get_current_data() retrieving current data.")
        try:
            if not self.gate.wait(timeout):
                logger.error(
                    "Timed out after %ss waiting for %s to initialize, "
                    "the config data may not be ready yet",
                    timeout,
                    self.root_path,
                )
        except GateInterrupted:
            logger.error(
                "Interrupted while waiting for %s to initialize, "
                "the config data may not be ready yet",
                self.root_path,
            )

        data: Dict[str, str] = {}
        for child_name in sorted(self.client.get_children(self.root_path) or {}):
            child_path = join_path(self.root_path, child_name)
            for leaf_name, node in (self.client.get_children(child_path) or {}).items():
                leaf_path = join_path(child_path, leaf_name)
                try:
                    value = (node.data or b"").decode(self.encoding)
                except UnicodeDecodeError:
                    logger.error("Cannot decode data of %s, skipping it", leaf_path)
                    continue
                data[path_to_key(leaf_path, self.root_path)] = value

        logger.debug("get_current_data() retrieved [%d] config elements.", len(data))
        return data
