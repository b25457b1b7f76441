import logging
from typing import Optional, Union

from borsh_construct import CStruct, Option, U64
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from .errors import ConfigurationError, InvalidKeyError

logger = logging.getLogger(__name__)

MPL_CORE_PROGRAM_ID = Pubkey.from_string("CoREENxT6tW1HoK8ypY1SxRMZTcVPm7R94rH4PZNhX7d")
SYS_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
SYSVAR_RENT_ID = Pubkey.from_string("SysvarRent111111111111111111111111111111111")
SYSVAR_INSTRUCTIONS_ID = Pubkey.from_string("Sysvar1nstructions1111111111111111111111111")

# Sentinels for the optional transferV1 accounts.
UNSET_PUBKEY = Pubkey.default()
NO_DELEGATE = UNSET_PUBKEY
NO_COLLECTION = MPL_CORE_PROGRAM_ID

TRANSFER_V1_DISCRIMINATOR = bytes([116, 97, 188, 150, 133, 175, 148, 44])
TRANSFER_V1_ACCOUNT_COUNT = 10
SINGLE_ASSET_AMOUNT = 1

TransferV1ArgsLayout = CStruct("amount" / Option(U64))

KeyInput = Union[Pubkey, str, bytes, bytearray]


def to_pubkey(value: KeyInput, label: str = "pubkey") -> Pubkey:
    if isinstance(value, Pubkey):
        return value
    if value is None or value == "":
        raise InvalidKeyError(f"{label} is missing")
    if isinstance(value, (bytes, bytearray)):
        # from_bytes panics (BaseException) on a wrong length
        if len(value) != 32:
            raise InvalidKeyError(f"{label} must be 32 bytes, got {len(value)}")
        return Pubkey.from_bytes(bytes(value))
    try:
        return Pubkey.from_string(value.strip())
    except Exception as exc:  # noqa: BLE001
        raise InvalidKeyError(f"{label} is not a valid pubkey: {value!r} ({exc})") from exc


def validate_pubkey(value: KeyInput, label: str, on_curve: bool = True) -> Pubkey:
    pubkey = to_pubkey(value, label)
    if on_curve and not pubkey.is_on_curve():
        raise InvalidKeyError(f"{label} is not a valid ed25519 point: {pubkey}")
    return pubkey


def resolve_collection(collection: Optional[KeyInput], require_collection: bool) -> Pubkey:
    if collection is None or collection == "":
        if require_collection:
            raise ConfigurationError("Collection address is required for this transfer but is not set")
        return NO_COLLECTION
    collection_pk = to_pubkey(collection, "collection")
    if collection_pk == UNSET_PUBKEY:
        if require_collection:
            raise ConfigurationError(f"Collection address is invalid: {collection_pk}")
        return NO_COLLECTION
    return collection_pk


class LayoutTransferEncoder:
    """transferV1 args via the borsh layout."""

    name = "layout"

    def encode(self, amount: int = SINGLE_ASSET_AMOUNT) -> bytes:
        return TRANSFER_V1_DISCRIMINATOR + TransferV1ArgsLayout.build({"amount": amount})


class ManualTransferEncoder:
    """transferV1 args written byte by byte: Some flag + u64 LE amount."""

    name = "manual"

    def encode(self, amount: int = SINGLE_ASSET_AMOUNT) -> bytes:
        return TRANSFER_V1_DISCRIMINATOR + bytes([1]) + int(amount).to_bytes(8, "little")


TRANSFER_ENCODERS = {
    LayoutTransferEncoder.name: LayoutTransferEncoder,
    ManualTransferEncoder.name: ManualTransferEncoder,
}


def select_transfer_encoder(name: str = "layout"):
    try:
        encoder = TRANSFER_ENCODERS[name.lower()]()
    except KeyError as exc:
        raise ConfigurationError(
            f"TRANSFER_ENCODER must be one of {sorted(TRANSFER_ENCODERS)}, got {name!r}"
        ) from exc
    logger.info("transfer_encoder_selected name=%s", encoder.name)
    return encoder


def encode_transfer_v1(amount: int = SINGLE_ASSET_AMOUNT, encoder=None) -> bytes:
    return (encoder or LayoutTransferEncoder()).encode(amount)


def build_transfer_v1_ix(
    asset: KeyInput,
    owner: KeyInput,
    destination: KeyInput,
    collection: Optional[KeyInput] = None,
    *,
    require_collection: bool = False,
    delegate: Optional[KeyInput] = None,
    update_authority: Optional[KeyInput] = None,
    payer: Optional[KeyInput] = None,
    encoder=None,
) -> Instruction:
    asset_pk = validate_pubkey(asset, "asset")
    destination_pk = validate_pubkey(destination, "destination")
    # owner may be a PDA (e.g. a multisig signer), so only the encoding is checked
    owner_pk = validate_pubkey(owner, "owner", on_curve=False)
    collection_pk = resolve_collection(collection, require_collection)
    delegate_pk = to_pubkey(delegate, "delegate") if delegate is not None else NO_DELEGATE
    authority_pk = to_pubkey(update_authority, "update_authority") if update_authority is not None else owner_pk
    payer_pk = to_pubkey(payer, "payer") if payer is not None else owner_pk

    accounts = [
        AccountMeta(pubkey=asset_pk, is_signer=False, is_writable=True),
        AccountMeta(pubkey=owner_pk, is_signer=True, is_writable=False),
        AccountMeta(pubkey=delegate_pk, is_signer=False, is_writable=False),
        AccountMeta(pubkey=collection_pk, is_signer=False, is_writable=False),
        AccountMeta(pubkey=authority_pk, is_signer=False, is_writable=False),
        AccountMeta(pubkey=destination_pk, is_signer=False, is_writable=False),
        AccountMeta(pubkey=payer_pk, is_signer=True, is_writable=True),
        AccountMeta(pubkey=SYS_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYSVAR_RENT_ID, is_signer=False, is_writable=False),
        AccountMeta(pubkey=SYSVAR_INSTRUCTIONS_ID, is_signer=False, is_writable=False),
    ]
    data = encode_transfer_v1(SINGLE_ASSET_AMOUNT, encoder)
    return Instruction(program_id=MPL_CORE_PROGRAM_ID, data=data, accounts=accounts)
