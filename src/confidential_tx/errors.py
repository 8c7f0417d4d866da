"""
Exception taxonomy for transaction construction.

Every condition here is terminal for the operation that raised it; nothing
inside the library retries.
"""

from __future__ import annotations


# ==============================================================================
# Transaction builder
# ==============================================================================


class TxBuilderError(Exception):
    """Base class for failures while building a transaction."""
    pass


class BlockVersionTooOld(TxBuilderError):
    """The requested block version is below the supported range."""
    pass


class BlockVersionTooNew(TxBuilderError):
    """The requested block version is above BlockVersion.MAX."""
    pass


class FeatureNotSupportedAtBlockVersion(TxBuilderError):
    """A feature was used that the targeted block version does not enable."""
    pass


class MixedTransactionsNotAllowed(TxBuilderError):
    """More than one token id was used at a version without mixed transactions."""

    def __init__(self, expected_token_id: int, found_token_id: int) -> None:
        super().__init__(
            f"Mixed transactions not allowed at this block version: "
            f"expected token id {expected_token_id}, found {found_token_id}"
        )
        self.expected_token_id = expected_token_id
        self.found_token_id = found_token_id


class SignedInputRulesNotAllowed(TxBuilderError):
    """A presigned input was used at a version without signed input rules."""
    pass


class NoInputs(TxBuilderError):
    """build() was called before any input was added."""
    pass


class InvalidRingSize(TxBuilderError):
    """Input rings differ in size, or a ring is empty."""
    pass


class MissingMembershipProofs(TxBuilderError):
    """A ring does not have exactly one membership proof per member."""

    def __init__(self, num_ring_elements: int, num_proofs: int) -> None:
        super().__init__(
            f"Ring has {num_ring_elements} elements but {num_proofs} membership proofs"
        )
        self.num_ring_elements = num_ring_elements
        self.num_proofs = num_proofs


class RingSignatureFailed(TxBuilderError):
    """The signing primitive refused to sign, usually because value is not conserved."""
    pass


class FogPubkeyError(TxBuilderError):
    """A recipient advertises a fog report url but its pubkey could not be resolved."""
    pass


class WrongNumberOfRequiredOutputAmounts(TxBuilderError):
    """A presigned input's required-output rules and unmasked amounts differ in count."""
    pass


class BuilderConsumed(TxBuilderError):
    """The builder was already finalized and cannot be used again."""
    pass


# ==============================================================================
# Memo policy
# ==============================================================================


class NewMemoError(Exception):
    """Base class for memo policy rejections."""
    pass


class FeeAfterChange(NewMemoError):
    """The fee cannot change once a change output has been written."""
    pass


class OutputsAfterChange(NewMemoError):
    """No recipient outputs may follow the change output."""
    pass


class MultipleChangeOutputs(NewMemoError):
    """Only one change output is allowed."""
    pass


class MultipleOutputs(NewMemoError):
    """The policy allows a single non-change output."""
    pass


class MissingOutput(NewMemoError):
    """A change output was written before any recipient output."""
    pass


class MixedTokenIds(NewMemoError):
    """Outlay, fee and change do not share a token id."""
    pass


class InvalidRecipient(NewMemoError):
    """The policy does not allow outputs to this recipient."""
    pass


class LimitsExceeded(NewMemoError):
    """A memo field overflowed (recipient count, fee or total outlay)."""
    pass


class BadCredential(NewMemoError):
    """Sender credential does not match the account it claims to belong to."""
    pass


# ==============================================================================
# Signed contingent inputs
# ==============================================================================


class SignedContingentInputError(Exception):
    """Base class for malformed signed contingent inputs."""
    pass


class MissingRules(SignedContingentInputError):
    """The input carries no input rules."""
    pass


class RingSizeMismatch(SignedContingentInputError):
    """Ring, membership proofs and global indices differ in length."""
    pass


class TokenIdMismatch(SignedContingentInputError):
    """A required output amount does not match its masked output."""
    pass


class RuleViolation(SignedContingentInputError):
    """The input's rules cannot be satisfied (e.g. block version)."""
    pass


class SignatureInvalid(SignedContingentInputError):
    """The presigned ring signature does not verify."""
    pass


# ==============================================================================
# Crypto level
# ==============================================================================


class AmountError(Exception):
    """A masked amount could not be reopened with the given shared secret."""
    pass


class RingSignatureError(Exception):
    """Ring signing or verification failed."""
    pass


class FogHintError(Exception):
    """An encrypted fog hint could not be decrypted."""
    pass


class TransactionValidationError(Exception):
    """A built transaction violates a structural or signature rule."""
    pass
