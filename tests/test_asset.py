from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from solders.keypair import Keypair

from conftest import asset_data
from core_transfer.asset import RpcAccountReader, fetch_asset, parse_asset_account, verify_owner
from core_transfer.errors import VerificationError
from core_transfer.tx_builder import MPL_CORE_PROGRAM_ID, SYS_PROGRAM_ID


def test_parse_asset_with_collection_authority():
    owner, collection = Keypair().pubkey(), Keypair().pubkey()
    state = parse_asset_account(asset_data(owner, "collection", collection, trailing=b"\x03plugins"))

    assert state.owner == owner
    assert state.update_authority_kind == "collection"
    assert state.collection == collection
    assert state.name == "Card #1"
    assert state.uri == "https://example.com/1.json"


def test_parse_asset_with_address_authority_has_no_collection():
    owner, authority = Keypair().pubkey(), Keypair().pubkey()
    state = parse_asset_account(asset_data(owner, "address", authority))

    assert state.update_authority == authority
    assert state.collection is None


def test_parse_asset_without_authority():
    state = parse_asset_account(asset_data(Keypair().pubkey()))
    assert state.update_authority is None
    assert state.collection is None


def test_parse_rejects_other_account_kinds_and_truncation():
    data = asset_data(Keypair().pubkey())
    assert parse_asset_account(bytes([5]) + data[1:]) is None
    assert parse_asset_account(data[:20]) is None
    assert parse_asset_account(data[:-3]) is None
    assert parse_asset_account(b"") is None


def test_fetch_asset_missing(reader):
    with pytest.raises(VerificationError, match="does not exist"):
        fetch_asset(reader, Keypair().pubkey())


def test_fetch_asset_wrong_program(reader):
    asset = Keypair().pubkey()
    reader.put_asset(asset, Keypair().pubkey(), program=SYS_PROGRAM_ID)
    with pytest.raises(VerificationError, match="wrong program"):
        fetch_asset(reader, asset)


def test_verify_owner(reader):
    asset, owner, other = Keypair().pubkey(), Keypair().pubkey(), Keypair().pubkey()
    reader.put_asset(asset, owner)

    assert verify_owner(reader, asset, owner) is True
    assert verify_owner(reader, str(asset), str(other)) is False


def test_rpc_reader_maps_account_info():
    owner = Keypair().pubkey()
    client = MagicMock()
    client.get_account_info.return_value = SimpleNamespace(
        value=SimpleNamespace(owner=MPL_CORE_PROGRAM_ID, data=asset_data(owner))
    )
    client.get_balance.return_value = SimpleNamespace(value=42)
    reader = RpcAccountReader(client, "finalized")
    asset = Keypair().pubkey()

    assert fetch_asset(reader, asset).owner == owner
    assert reader.get_balance(owner) == 42
    client.get_account_info.assert_called_with(asset, commitment="finalized")

    client.get_account_info.return_value = SimpleNamespace(value=None)
    assert reader.get_account(asset) is None
