import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from solana.rpc.api import Client as SolanaClient
from solders.pubkey import Pubkey

from .errors import VerificationError
from .tx_builder import MPL_CORE_PROGRAM_ID, to_pubkey

logger = logging.getLogger(__name__)

ASSET_V1_KEY = 1
UPDATE_AUTHORITY_KINDS = ["none", "address", "collection"]


@dataclass(frozen=True)
class AccountSnapshot:
    owner_program: Pubkey
    data: bytes


@dataclass(frozen=True)
class AssetState:
    address: Pubkey
    owner: Pubkey
    update_authority_kind: str
    update_authority: Optional[Pubkey]
    name: str
    uri: str

    @property
    def collection(self) -> Optional[Pubkey]:
        if self.update_authority_kind == "collection":
            return self.update_authority
        return None


class AccountReader(Protocol):
    def get_account(self, pubkey: Pubkey) -> Optional[AccountSnapshot]: ...


class RpcAccountReader:
    def __init__(self, client: SolanaClient, commitment: str = "confirmed"):
        self.client = client
        self.commitment = commitment

    def get_account(self, pubkey: Pubkey) -> Optional[AccountSnapshot]:
        resp = self.client.get_account_info(pubkey, commitment=self.commitment)
        if resp.value is None or resp.value.data is None:
            return None
        return AccountSnapshot(owner_program=resp.value.owner, data=bytes(resp.value.data))

    def get_balance(self, pubkey: Pubkey) -> int:
        return self.client.get_balance(pubkey, commitment=self.commitment).value


def _read_string(data: bytes, offset: int):
    if len(data) < offset + 4:
        return None, offset
    length = int.from_bytes(data[offset : offset + 4], "little")
    offset += 4
    if len(data) < offset + length:
        return None, offset
    return data[offset : offset + length].decode("utf-8", errors="replace"), offset + length


def parse_asset_account(data: bytes, address: Optional[Pubkey] = None) -> Optional[AssetState]:
    """Decode the AssetV1 header of a Metaplex Core asset account.

    Layout: key (u8) | owner (32) | update_authority (u8 tag, +32 unless None) |
    name (u32 len + utf8) | uri (u32 len + utf8). Plugin data that follows is ignored.
    """
    if len(data) < 1 + 32 + 1 or data[0] != ASSET_V1_KEY:
        return None
    offset = 1
    owner = Pubkey.from_bytes(data[offset : offset + 32])
    offset += 32
    ua_tag = data[offset]
    offset += 1
    if ua_tag >= len(UPDATE_AUTHORITY_KINDS):
        return None
    update_authority = None
    if ua_tag != 0:
        if len(data) < offset + 32:
            return None
        update_authority = Pubkey.from_bytes(data[offset : offset + 32])
        offset += 32
    name, offset = _read_string(data, offset)
    if name is None:
        return None
    uri, offset = _read_string(data, offset)
    if uri is None:
        return None
    return AssetState(
        address=address or Pubkey.default(),
        owner=owner,
        update_authority_kind=UPDATE_AUTHORITY_KINDS[ua_tag],
        update_authority=update_authority,
        name=name,
        uri=uri,
    )


def fetch_asset(reader: AccountReader, asset) -> AssetState:
    asset_pk = to_pubkey(asset, "asset")
    account = reader.get_account(asset_pk)
    if account is None:
        raise VerificationError(f"Asset account {asset_pk} does not exist")
    if account.owner_program != MPL_CORE_PROGRAM_ID:
        raise VerificationError(
            f"Asset account {asset_pk} owned by wrong program: owner={account.owner_program} expected={MPL_CORE_PROGRAM_ID}"
        )
    state = parse_asset_account(account.data, asset_pk)
    if state is None:
        raise VerificationError(f"Asset account {asset_pk} is not a Metaplex Core AssetV1 (size={len(account.data)})")
    return state


def verify_owner(reader: AccountReader, asset, expected) -> bool:
    """Read-only post-condition: does the asset's owner field equal ``expected`` now."""
    expected_pk = to_pubkey(expected, "expected_owner")
    state = fetch_asset(reader, asset)
    logger.info("asset_owner_check asset=%s owner=%s expected=%s", state.address, state.owner, expected_pk)
    return state.owner == expected_pk
