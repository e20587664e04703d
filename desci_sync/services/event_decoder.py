"""
Event decoder

Two steps, both pure:
1. decode_log(): raw eth_getLogs entry → ChainEvent (args by ABI name)
2. to_domain_event(): ChainEvent → typed variant, or UnknownEvent

Raw logs whose topic0 is not registered still become a ChainEvent (args
hold only topic0) so they are recorded; they surface as UnknownEvent in step 2.
Malformed payloads raise DecodeError.
"""
import logging
from typing import Any, Callable, Dict, Optional

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes

from .errors import DecodeError
from .event_abi import EventRegistry, EventSpec
from ..models.domain import (
    ChainEvent,
    DomainEvent,
    UserRegistered,
    ReputationUpdated,
    DatasetUploaded,
    DatasetAccessPurchased,
    DatasetCited,
    ResearchMinted,
    ResearchCited,
    PeerReviewSubmitted,
    UnknownEvent,
)
from ..utils.hex_utils import normalize_address, parse_int, to_hex_bytes

logger = logging.getLogger(__name__)

UNKNOWN_EVENT_NAME = "Unknown"


class EventDecoder:
    """Decodes raw logs against an EventRegistry"""

    def __init__(self, registry: Optional[EventRegistry] = None):
        self.registry = registry or EventRegistry()

    # =========================================================================
    # RAW LOG → ChainEvent
    # =========================================================================

    def decode_log(self, log: Dict[str, Any]) -> ChainEvent:
        """
        Decode one eth_getLogs entry.

        Raises:
            DecodeError: missing envelope fields or undecodable payload
        """
        try:
            address = normalize_address(log['address'])
            block_number = parse_int(log['blockNumber'])
            tx_hash = to_hex_bytes(log['transactionHash'])
            log_index = parse_int(log['logIndex'])
            topics = [to_hex_bytes(t) for t in log.get('topics') or []]
            data = HexBytes(log.get('data') or '0x')
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"malformed log envelope: {e}") from e

        spec = self.registry.by_topic(topics[0]) if topics else None
        if spec is None:
            return ChainEvent(
                contract_address=address,
                event_name=UNKNOWN_EVENT_NAME,
                block_number=block_number,
                transaction_hash=tx_hash,
                log_index=log_index,
                args={'topic0': topics[0] if topics else None},
            )

        args = self._decode_args(spec, topics[1:], bytes(data), tx_hash, log_index)
        return ChainEvent(
            contract_address=address,
            event_name=spec.name,
            block_number=block_number,
            transaction_hash=tx_hash,
            log_index=log_index,
            args=args,
        )

    def _decode_args(self, spec: EventSpec, topics, data: bytes, tx_hash: str, log_index: int) -> Dict[str, Any]:
        indexed = spec.indexed_params
        if len(topics) != len(indexed):
            raise DecodeError(
                f"{spec.name} at {tx_hash}:{log_index} has {len(topics)} indexed topics, "
                f"expected {len(indexed)}"
            )

        args: Dict[str, Any] = {}
        try:
            for param, topic in zip(indexed, topics):
                if param.is_dynamic:
                    # Only the hash of a dynamic indexed value is on chain
                    args[param.name] = topic
                else:
                    (value,) = abi_decode([param.type], bytes(HexBytes(topic)))
                    args[param.name] = _jsonable(value, param.type)

            data_params = spec.data_params
            values = abi_decode([p.type for p in data_params], data) if data_params else ()
            for param, value in zip(data_params, values):
                args[param.name] = _jsonable(value, param.type)
        except (DecodingError, ValueError, OverflowError) as e:
            raise DecodeError(f"{spec.name} at {tx_hash}:{log_index}: {e}") from e

        return args

    # =========================================================================
    # ChainEvent → typed variant
    # =========================================================================

    def to_domain_event(self, event: ChainEvent) -> DomainEvent:
        """
        Map a ChainEvent onto its typed variant.

        Unknown names yield UnknownEvent. Known names with missing or
        ill-typed args raise DecodeError.
        """
        builder = _BUILDERS.get(event.event_name)
        if builder is None:
            return UnknownEvent(source=event, reason=f"unsupported event {event.event_name}")
        try:
            return builder(event, event.args)
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"{event}: bad args for {event.event_name}: {e}") from e


def _jsonable(value: Any, abi_type: str) -> Any:
    """Normalize eth_abi output into JSON-safe Python values"""
    if abi_type.endswith("[]"):
        return [_jsonable(v, abi_type[:-2]) for v in value]
    if abi_type == "address":
        return normalize_address(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return value


def _token(value: Any) -> str:
    """uint256 ids are kept as decimal strings; string ids pass through"""
    if isinstance(value, bool):
        raise ValueError(f"invalid id {value!r}")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and value:
        return value
    raise ValueError(f"invalid id {value!r}")


def _hash(value: Any) -> str:
    return to_hex_bytes(value)


# =============================================================================
# Builders (one per supported event)
# =============================================================================

_BUILDERS: Dict[str, Callable[[ChainEvent, Dict[str, Any]], DomainEvent]] = {
    'UserRegistered': lambda e, a: UserRegistered(
        source=e,
        user=normalize_address(a['user']),
        name=str(a['name']),
        organization=str(a['organization']),
        email=str(a['email']),
        research_fields=str(a['researchFields']),
        credentials_hash=str(a['credentialsHash']),
        role=int(a['role']),
    ),
    'ReputationUpdated': lambda e, a: ReputationUpdated(
        source=e,
        user=normalize_address(a['user']),
        old_reputation=int(a['oldReputation']),
        new_reputation=int(a['newReputation']),
        reason=str(a['reason']),
    ),
    'DatasetUploaded': lambda e, a: DatasetUploaded(
        source=e,
        dataset_id=_token(a['datasetId']),
        uploader=normalize_address(a['uploader']),
        title=str(a['title']),
        ipfs_hash=str(a['ipfsHash']),
        access_price=int(a['accessPrice']),
    ),
    'DatasetAccessPurchased': lambda e, a: DatasetAccessPurchased(
        source=e,
        dataset_id=_token(a['datasetId']),
        buyer=normalize_address(a['buyer']),
        amount=int(a['amount']),
    ),
    'DatasetCited': lambda e, a: DatasetCited(
        source=e,
        dataset_id=_token(a['datasetId']),
        citer=normalize_address(a['citer']),
        citing_work_hash=str(a['citingWorkHash']),
    ),
    'ResearchMinted': lambda e, a: ResearchMinted(
        source=e,
        token_id=_token(a['tokenId']),
        authors=tuple(normalize_address(x) for x in a['authors']),
        title=str(a['title']),
        content_hash=_hash(a['contentHash']),
        metadata_hash=str(a['metadataHash']),
    ),
    'ResearchCited': lambda e, a: ResearchCited(
        source=e,
        citing_token_id=_token(a['citingTokenId']),
        cited_token_id=_token(a['citedTokenId']),
        citer=normalize_address(a['citer']),
    ),
    'PeerReviewSubmitted': lambda e, a: PeerReviewSubmitted(
        source=e,
        token_id=_token(a['tokenId']),
        reviewer=normalize_address(a['reviewer']),
        score=int(a['score']),
        review_hash=str(a['reviewHash']),
        is_anonymous=bool(a['isAnonymous']),
    ),
}
