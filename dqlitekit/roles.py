"""Node roles and the algorithm deciding which node should hold which role."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional, Set, Tuple

MIN_VOTERS = 3


class NodeRole(IntEnum):
    """Role of a node in the cluster."""

    VOTER = 0
    STANDBY = 1
    SPARE = 2

    def __str__(self) -> str:
        return {
            NodeRole.VOTER: "voter",
            NodeRole.STANDBY: "stand-by",
            NodeRole.SPARE: "spare",
        }[self]


@dataclass(frozen=True)
class NodeInfo:
    """Identity, address and role of a single node."""

    id: int = 0
    address: str = ""
    role: NodeRole = NodeRole.VOTER


@dataclass(frozen=True)
class NodeMetadata:
    """User-defined node-level metadata."""

    failure_domain: int = 0
    weight: int = 0


@dataclass
class RolesConfig:
    """Target numbers of voters and stand-bys."""

    voters: int = 3
    stand_bys: int = 3


Decision = Tuple[Optional[NodeRole], List[NodeInfo]]


@dataclass
class RolesChanges:
    """Decide role changes from the current cluster state.

    ``state`` maps every node in the cluster to its metadata, or to ``None``
    when the node is offline.
    """

    config: RolesConfig = field(default_factory=RolesConfig)
    state: Dict[NodeInfo, Optional[NodeMetadata]] = field(default_factory=dict)

    def assume(self, node_id: int) -> Optional[NodeRole]:
        """Role the node should take at startup, or None if nothing changes."""
        if len(self.state) < MIN_VOTERS:
            return None

        node = self._get(node_id)
        if node is None:
            return None
        if node.role in (NodeRole.VOTER, NodeRole.STANDBY):
            return None

        online_voters = self.list(NodeRole.VOTER, True)
        online_standbys = self.list(NodeRole.STANDBY, True)

        if (
            len(online_voters) >= self.config.voters
            and len(online_standbys) >= self.config.stand_bys
        ):
            return None

        if len(online_voters) < self.config.voters:
            return NodeRole.VOTER
        return NodeRole.STANDBY

    def handover(self, node_id: int) -> Decision:
        """Role to hand over and candidates to receive it, best first."""
        node = self._get(node_id)
        if node is None:
            return None, []
        if node.role not in (NodeRole.VOTER, NodeRole.STANDBY):
            return None, []

        peers = [peer for peer in self.list(node.role, True) if peer.id != node.id]
        domains = self._failure_domains(peers)

        candidates = self.list(NodeRole.SPARE, True)
        if node.role == NodeRole.VOTER:
            candidates = self.list(NodeRole.STANDBY, True) + candidates

        if not candidates:
            return None, []

        return node.role, self._sort_candidates(candidates, domains)

    def adjust(self, leader: int) -> Decision:
        """Role to assign and candidates to assume it, best first."""
        if len(self.state) == 1:
            return None, []

        if len(self.state) < MIN_VOTERS:
            for node in self.state:
                if node.id == leader or node.role != NodeRole.VOTER:
                    continue
                return NodeRole.SPARE, [node]
            return None, []

        online_voters = self.list(NodeRole.VOTER, True)
        online_standbys = self.list(NodeRole.STANDBY, True)
        offline_voters = self.list(NodeRole.VOTER, False)
        offline_standbys = self.list(NodeRole.STANDBY, False)

        if (
            not offline_voters
            and len(online_voters) == self.config.voters
            and not offline_standbys
            and len(online_standbys) == self.config.stand_bys
        ):
            return None, []

        if len(online_voters) < self.config.voters:
            candidates = self.list(NodeRole.STANDBY, True) + self.list(NodeRole.SPARE, True)
            if not candidates:
                return None, []
            domains = self._failure_domains(online_voters)
            return NodeRole.VOTER, self._sort_candidates(candidates, domains)

        if len(online_voters) > self.config.voters:
            return NodeRole.SPARE, [n for n in online_voters if n.id != leader]

        if offline_voters:
            return NodeRole.SPARE, offline_voters

        if len(online_standbys) < self.config.stand_bys:
            candidates = self.list(NodeRole.SPARE, True)
            if not candidates:
                return None, []
            domains = self._failure_domains(online_standbys)
            return NodeRole.STANDBY, self._sort_candidates(candidates, domains)

        if len(online_standbys) > self.config.stand_bys:
            return NodeRole.SPARE, [n for n in online_standbys if n.id != leader]

        if offline_standbys:
            return NodeRole.SPARE, offline_standbys

        return None, []

    def list(self, role: NodeRole, online: bool) -> List[NodeInfo]:
        """Online or offline nodes holding the given role."""
        return [
            node
            for node, metadata in self.state.items()
            if node.role == role and (metadata is not None) == online
        ]

    def count(self, role: NodeRole, online: bool) -> int:
        """Number of online or offline nodes holding the given role."""
        return len(self.list(role, online))

    def _get(self, node_id: int) -> Optional[NodeInfo]:
        return next((node for node in self.state if node.id == node_id), None)

    def _failure_domains(self, nodes: List[NodeInfo]) -> Set[int]:
        return {
            metadata.failure_domain
            for metadata in (self.state.get(node) for node in nodes)
            if metadata is not None
        }

    def _sort_candidates(self, candidates: List[NodeInfo], domains: Set[int]) -> List[NodeInfo]:
        # Nodes outside the given failure domains come first, then lower weight.
        def key(node: NodeInfo) -> Tuple[bool, int]:
            metadata = self.state[node]
            return metadata.failure_domain in domains, metadata.weight

        return sorted(candidates, key=key)