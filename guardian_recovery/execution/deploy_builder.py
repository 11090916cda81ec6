"""
Deploy Builder
==============
Wraps an EncodedCall into an unsigned deploy using the Casper SDK (pycspr).

Responsibilities:
- Standard payment via `pycspr.create_standard_payment`
- Session item: ModuleBytes for BOOTSTRAP, StoredContractByHash otherwise
- Header, body hash and deploy hash via `pycspr.create_deploy`
- JSON round trip through pycspr's node-shape serialisers, re-checked
  with `pycspr.validate_deploy` on the way in

Signing happens elsewhere; `signing_payload()` is what gets signed and
`with_approval()` verifies the signature before attaching it.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

import pycspr
from ecdsa import BadSignatureError
from pycspr.types.cl import (
    CLV_Bool,
    CLV_ByteArray,
    CLV_List,
    CLV_PublicKey,
    CLV_String,
    CLV_U8,
    CLV_U32,
    CLV_U64,
    CLV_U128,
    CLV_U256,
    CLV_U512,
    CLV_Value,
)
from pycspr.types.node.rpc import Deploy as SdkDeploy
from pycspr.types.node.rpc import (
    DeployApproval,
    DeployOfModuleBytes,
    DeployOfStoredContractByHash,
)
from pycspr.utils import convertor

from guardian_recovery.errors import InvalidKeyEncoding, SchemaMismatch
from guardian_recovery.identity.codec import AccountIdentity, KeyAlgorithm, PublicKey
from guardian_recovery.protocol.clvalue import CLTypeTag, CLValue
from guardian_recovery.protocol.encoder import EncodedCall
from guardian_recovery.protocol.schema import CallMode, RuntimeArgs
from guardian_recovery.shared.system.logging import Logger


_SDK_UINTS = {
    CLTypeTag.U8: CLV_U8,
    CLTypeTag.U32: CLV_U32,
    CLTypeTag.U64: CLV_U64,
    CLTypeTag.U128: CLV_U128,
    CLTypeTag.U256: CLV_U256,
    CLTypeTag.U512: CLV_U512,
}

# What pycspr's JSON decoder can raise on a malformed document
_SDK_DECODE_ERRORS = (
    KeyError,
    TypeError,
    ValueError,
    AssertionError,
    NotImplementedError,
    AttributeError,
)


# ═══════════════════════════════════════════════════════════════════════════════
# SDK VALUE MAPPING
# ═══════════════════════════════════════════════════════════════════════════════

def to_sdk_value(value: CLValue) -> CLV_Value:
    """Our typed value as the matching pycspr CL value."""
    value.to_bytes()  # range-checks against the declared width
    tag = value.cl_type.tag

    if tag in _SDK_UINTS:
        return _SDK_UINTS[tag](value.value)
    if tag == CLTypeTag.BOOL:
        return CLV_Bool(value.value)
    if tag == CLTypeTag.STRING:
        return CLV_String(value.value)
    if tag == CLTypeTag.BYTE_ARRAY:
        raw = value.value.value if isinstance(value.value, AccountIdentity) else bytes(value.value)
        return CLV_ByteArray(raw)
    if tag == CLTypeTag.LIST:
        return CLV_List([to_sdk_value(CLValue(value.cl_type.inner, item)) for item in value.value])
    if tag == CLTypeTag.PUBLIC_KEY:
        return CLV_PublicKey(pycspr.KeyAlgorithm(value.value.algorithm.tag), value.value.raw)
    raise SchemaMismatch(f"No SDK mapping for CL type {value.cl_type.name}")


def from_sdk_value(value: CLV_Value) -> CLValue:
    """pycspr CL value back to ours, through the node's `{cl_type, bytes}` shape."""
    try:
        encoded = pycspr.to_json(value)
    except (IndexError, KeyError, TypeError, ValueError) as e:
        raise SchemaMismatch(f"Unsupported runtime argument value: {e}") from None
    return CLValue.from_json(encoded)


def to_sdk_key(key: PublicKey) -> pycspr.PublicKey:
    return pycspr.PublicKey(pycspr.KeyAlgorithm(key.algorithm.tag), key.raw)


def from_sdk_key(key: pycspr.PublicKey) -> PublicKey:
    return PublicKey(KeyAlgorithm.from_tag(key.algo.value), key.pbk)


def _signature_verifies(deploy_hash: bytes, signature: bytes, signer: PublicKey) -> bool:
    try:
        return bool(
            pycspr.verify_deploy_approval_signature(deploy_hash, signature, signer.to_bytes())
        )
    except (AssertionError, ValueError, BadSignatureError):
        return False


# ═══════════════════════════════════════════════════════════════════════════════
# DEPLOY
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Deploy:
    """
    A pycspr deploy restricted to the shapes the recovery client produces:
    standard payment plus a ModuleBytes or StoredContractByHash session.
    """

    sdk: SdkDeploy

    # -------------------------------------------------------------------------
    # Header
    # -------------------------------------------------------------------------

    @property
    def hash(self) -> bytes:
        return self.sdk.hash

    @property
    def hash_hex(self) -> str:
        return self.sdk.hash.hex()

    @property
    def account(self) -> PublicKey:
        return from_sdk_key(self.sdk.header.account)

    @property
    def chain_name(self) -> str:
        return self.sdk.header.chain_name

    @property
    def body_hash(self) -> bytes:
        return self.sdk.header.body_hash

    @property
    def timestamp_ms(self) -> int:
        return int(round(self.sdk.header.timestamp.value * 1000))

    @property
    def ttl_ms(self) -> int:
        return self.sdk.header.ttl.as_milliseconds

    @property
    def gas_price(self) -> int:
        return self.sdk.header.gas_price

    # -------------------------------------------------------------------------
    # Payment + session
    # -------------------------------------------------------------------------

    @property
    def payment_amount(self) -> int:
        for arg in self.sdk.payment.arguments:
            if arg.name == "amount":
                return arg.value.value
        raise SchemaMismatch("Payment has no amount argument")

    @property
    def mode(self) -> CallMode:
        if isinstance(self.sdk.session, DeployOfModuleBytes):
            return CallMode.BOOTSTRAP
        return CallMode.STORED_CALL

    @property
    def module_bytes(self) -> bytes:
        return getattr(self.sdk.session, "module_bytes", b"")

    @property
    def contract_hash(self) -> bytes:
        return getattr(self.sdk.session, "hash", b"")

    @property
    def entry_point(self) -> str:
        return getattr(self.sdk.session, "entry_point", "")

    @property
    def session_args(self) -> RuntimeArgs:
        return RuntimeArgs(tuple(
            (arg.name, from_sdk_value(arg.value)) for arg in self.sdk.session.arguments
        ))

    # -------------------------------------------------------------------------
    # Approvals
    # -------------------------------------------------------------------------

    @property
    def signers(self) -> List[PublicKey]:
        return [from_sdk_key(approval.signer) for approval in self.sdk.approvals]

    @property
    def is_signed(self) -> bool:
        return bool(self.sdk.approvals)

    def signing_payload(self) -> bytes:
        """The 32 bytes an external signer must sign."""
        return self.sdk.hash

    def with_approval(self, signer_hex: str, signature_hex: str) -> "Deploy":
        """
        Attach an externally produced approval.

        The signature is the signer's key tag followed by 64 bytes, and must
        verify against the deploy hash. A second approval from the same
        signer is ignored.
        """
        signer = PublicKey.from_hex(signer_hex)
        try:
            signature = bytes.fromhex(signature_hex.strip())
        except (AttributeError, ValueError):
            raise InvalidKeyEncoding(f"Signature is not valid hex: {signature_hex!r}") from None
        if len(signature) != 65 or signature[0] != signer.algorithm.tag:
            raise InvalidKeyEncoding("Signature must be the signer's key tag plus 64 bytes")
        if not _signature_verifies(self.sdk.hash, signature, signer):
            raise InvalidKeyEncoding(f"Signature does not verify for {signer.to_hex()[:18]}...")

        sdk_signer = to_sdk_key(signer)
        if any(a.signer == sdk_signer for a in self.sdk.approvals):
            return self
        approvals = list(self.sdk.approvals) + [DeployApproval(sdk_signer, signature)]
        return Deploy(replace(self.sdk, approvals=approvals))

    # -------------------------------------------------------------------------
    # JSON
    # -------------------------------------------------------------------------

    def to_json(self) -> Dict[str, Any]:
        return pycspr.to_json(self.sdk)

    @classmethod
    def from_json(cls, obj: Dict[str, Any]) -> "Deploy":
        """
        Re-read a deploy (usually externally signed).

        Both hashes and every approval signature are re-checked; a deploy
        whose body or header no longer matches its hashes is rejected
        before it can be submitted.
        """
        if not isinstance(obj, dict):
            raise SchemaMismatch(f"Deploy JSON must be an object, got {type(obj).__name__}")
        if "deploy" in obj and "header" not in obj:
            obj = obj["deploy"]
        try:
            sdk = pycspr.from_json(obj, SdkDeploy)
        except _SDK_DECODE_ERRORS as e:
            raise SchemaMismatch(f"Malformed deploy JSON: {e!r}") from None

        if not isinstance(sdk.payment, DeployOfModuleBytes) or sdk.payment.module_bytes:
            raise SchemaMismatch("Only standard payment deploys are supported")
        if type(sdk.session) not in (DeployOfModuleBytes, DeployOfStoredContractByHash):
            raise SchemaMismatch(f"Unsupported session item: {type(sdk.session).__name__}")

        try:
            pycspr.validate_deploy(sdk)
        except pycspr.InvalidDeployException as e:
            raise SchemaMismatch(_describe_invalid(e.msg)) from None
        except (AssertionError, ValueError, BadSignatureError):
            raise SchemaMismatch("Deploy approval signature does not verify") from None

        return cls(sdk)


def _describe_invalid(message: str) -> str:
    if "body hash" in message:
        return "Deploy body does not match header body_hash"
    if "deploy hash" in message:
        return "Deploy header does not match deploy hash"
    return "Deploy approval signature does not verify"


# ═══════════════════════════════════════════════════════════════════════════════
# BUILDER
# ═══════════════════════════════════════════════════════════════════════════════

def load_session_wasm(path: str) -> bytes:
    """Read the bootstrap module run by registration deploys."""
    with open(path, "rb") as f:
        module = f.read()
    if not module:
        raise SchemaMismatch(f"Session module at {path} is empty")
    return module


def parse_contract_hash(contract_hash: str) -> bytes:
    text = contract_hash.strip()
    for prefix in ("hash-", "contract-"):
        if text.startswith(prefix):
            text = text[len(prefix):]
    try:
        raw = bytes.fromhex(text)
    except ValueError:
        raise SchemaMismatch(f"Contract hash is not valid hex: {contract_hash!r}") from None
    if len(raw) != 32:
        raise SchemaMismatch(f"Contract hash must be 32 bytes, got {len(raw)}")
    return raw


class DeployBuilder:
    """
    Turns encoded calls into unsigned deploys for one chain.

    Usage:
        builder = DeployBuilder("casper-test")
        deploy = builder.build(call, 5_000_000_000, contract_hash=registry_hash)
        payload = deploy.signing_payload()
    """

    def __init__(
        self,
        chain_name: str,
        ttl_ms: int = 30 * 60 * 1000,
        gas_price: int = 1,
    ):
        self.chain_name = chain_name
        self.ttl_ms = ttl_ms
        self.gas_price = gas_price

    def build(
        self,
        call: EncodedCall,
        payment_amount: int,
        contract_hash: Optional[str] = None,
        session_wasm: Optional[bytes] = None,
        timestamp_ms: Optional[int] = None,
    ) -> Deploy:
        args = pycspr.create_deploy_arguments(
            {name: to_sdk_value(value) for name, value in call.args.args}
        )

        if call.mode == CallMode.BOOTSTRAP:
            if not session_wasm:
                raise SchemaMismatch(f"{call.action.value} needs session module bytes")
            session = DeployOfModuleBytes(args=args, module_bytes=session_wasm)
        else:
            if not contract_hash:
                raise SchemaMismatch(f"{call.action.value} needs the registry contract hash")
            session = DeployOfStoredContractByHash(
                args=args,
                entry_point=call.entry_point,
                hash=parse_contract_hash(contract_hash),
            )

        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        if timestamp_ms % 1000 == 0:
            # pycspr's ISO timestamp encoder needs a non-zero fraction
            timestamp_ms += 1

        try:
            params = pycspr.create_deploy_parameters(
                account=to_sdk_key(call.caller),
                chain_name=self.chain_name,
                gas_price=self.gas_price,
                timestamp=timestamp_ms / 1000,
                ttl=convertor.humanized_time_interval_from_ms(self.ttl_ms),
            )
        except ValueError as e:
            raise SchemaMismatch(f"Invalid deploy parameters: {e}") from None

        deploy = Deploy(pycspr.create_deploy(
            params, pycspr.create_standard_payment(payment_amount), session
        ))

        Logger.debug(
            f"[BUILDER] {call.action.value} deploy {deploy.hash_hex[:16]}... "
            f"({call.mode.value}, payment={payment_amount})"
        )
        return deploy
