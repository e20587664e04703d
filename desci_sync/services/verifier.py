"""
Content Integrity Verifier

Recomputes the content hash of supplied raw text and compares it to the
hash recorded on chain when the research token was minted.

Digest: keccak-256 over the UTF-8 bytes, rendered as 0x + lowercase hex.
Verification is read-only; a mismatch is a normal result, not an error.
"""
import hashlib
import logging

from eth_utils import keccak

from .errors import NotFound
from ..models.domain import VerificationResult

logger = logging.getLogger(__name__)


def compute_hash(content: str) -> str:
    """
    Mint-time content hash of a text

    Raises:
        UnicodeEncodeError: text holds lone surrogates
    """
    return "0x" + keccak(text=content).hex()


def compute_sha256(content: str) -> str:
    """SHA-256 of a text in the same 0x-hex rendering"""
    return "0x" + hashlib.sha256(content.encode('utf-8')).hexdigest()


class ContentVerifier:
    """
    Example:
        verifier = ContentVerifier(store.research)
        result = await verifier.verify("42", raw_text)
        if not result.match: ...
    """

    def __init__(self, research_repo):
        self.research_repo = research_repo

    async def verify(self, token_id: str, raw_content: str) -> VerificationResult:
        """
        Raises:
            NotFound: token has not been projected
        """
        record = await self.research_repo.get_by_token_id(token_id)
        if record is None:
            raise NotFound("research", token_id)

        result = VerificationResult(
            token_id=token_id,
            requested_hash=record.content_hash.lower(),
            computed_hash=compute_hash(raw_content),
        )
        if not result.match:
            logger.info(
                f"Content mismatch for research {token_id}: "
                f"stored {result.requested_hash[:12]}…, computed {result.computed_hash[:12]}…"
            )
        return result
