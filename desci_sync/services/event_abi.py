"""
Event ABI registry

Signatures of the contract events the listener understands. topic0 for
each event is keccak-256 of its canonical signature, so the registry can
also build the eth_getLogs topic filter.
"""
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from eth_utils import keccak


@dataclass(frozen=True)
class EventParam:
    name: str
    type: str
    indexed: bool = False

    @property
    def is_dynamic(self) -> bool:
        """Dynamic types are only available as a hash when indexed"""
        return self.type in ('string', 'bytes') or self.type.endswith('[]')


@dataclass(frozen=True)
class EventSpec:
    contract: str
    name: str
    params: Tuple[EventParam, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(p.type for p in self.params)})"

    @property
    def topic(self) -> str:
        return "0x" + keccak(text=self.signature).hex()

    @property
    def indexed_params(self) -> List[EventParam]:
        return [p for p in self.params if p.indexed]

    @property
    def data_params(self) -> List[EventParam]:
        return [p for p in self.params if not p.indexed]


def _p(name: str, type_: str, indexed: bool = False) -> EventParam:
    return EventParam(name=name, type=type_, indexed=indexed)


# =============================================================================
# Platform events
# =============================================================================

PLATFORM_EVENTS: Tuple[EventSpec, ...] = (
    # DeSciRegistry
    EventSpec('DeSciRegistry', 'UserRegistered', (
        _p('user', 'address', indexed=True),
        _p('name', 'string'),
        _p('organization', 'string'),
        _p('email', 'string'),
        _p('researchFields', 'string'),
        _p('credentialsHash', 'string'),
        _p('role', 'uint8'),
    )),
    EventSpec('DeSciRegistry', 'ReputationUpdated', (
        _p('user', 'address', indexed=True),
        _p('oldReputation', 'uint256'),
        _p('newReputation', 'uint256'),
        _p('reason', 'string'),
    )),

    # DatasetManager
    EventSpec('DatasetManager', 'DatasetUploaded', (
        _p('datasetId', 'uint256', indexed=True),
        _p('uploader', 'address', indexed=True),
        _p('title', 'string'),
        _p('ipfsHash', 'string'),
        _p('accessPrice', 'uint256'),
    )),
    EventSpec('DatasetManager', 'DatasetAccessPurchased', (
        _p('datasetId', 'uint256', indexed=True),
        _p('buyer', 'address', indexed=True),
        _p('amount', 'uint256'),
    )),
    EventSpec('DatasetManager', 'DatasetCited', (
        _p('datasetId', 'uint256', indexed=True),
        _p('citer', 'address', indexed=True),
        _p('citingWorkHash', 'string'),
    )),

    # ResearchNFT
    EventSpec('ResearchNFT', 'ResearchMinted', (
        _p('tokenId', 'uint256', indexed=True),
        _p('authors', 'address[]'),
        _p('title', 'string'),
        _p('contentHash', 'bytes32'),
        _p('metadataHash', 'string'),
    )),
    EventSpec('ResearchNFT', 'ResearchCited', (
        _p('citingTokenId', 'uint256', indexed=True),
        _p('citedTokenId', 'uint256', indexed=True),
        _p('citer', 'address'),
    )),
    EventSpec('ResearchNFT', 'PeerReviewSubmitted', (
        _p('tokenId', 'uint256', indexed=True),
        _p('reviewer', 'address', indexed=True),
        _p('score', 'uint8'),
        _p('reviewHash', 'string'),
        _p('isAnonymous', 'bool'),
    )),
)


class EventRegistry:
    """topic0 → EventSpec lookup"""

    def __init__(self, specs: Iterable[EventSpec] = PLATFORM_EVENTS):
        self._by_topic: Dict[str, EventSpec] = {}
        self._by_name: Dict[str, EventSpec] = {}
        for spec in specs:
            self._by_topic[spec.topic] = spec
            self._by_name[spec.name] = spec

    def __len__(self) -> int:
        return len(self._by_topic)

    def by_topic(self, topic: str) -> Optional[EventSpec]:
        return self._by_topic.get(topic.lower())

    def by_name(self, name: str) -> Optional[EventSpec]:
        return self._by_name.get(name)

    def topic_filter(self, contracts: Optional[Iterable[str]] = None) -> List[List[str]]:
        """eth_getLogs topics filter matching any registered topic0"""
        if contracts is None:
            topics = list(self._by_topic)
        else:
            wanted = set(contracts)
            topics = [t for t, s in self._by_topic.items() if s.contract in wanted]
        return [sorted(topics)]
