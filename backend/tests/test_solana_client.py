from unittest.mock import MagicMock

import pytest
from solders.keypair import Keypair

from horse_race.errors import CorruptRaceState, SolanaRpcError
from horse_race.program.state import RACE_ACCOUNT_SIZE, GameState, HorseRace
from horse_race.services.solana_client import SolanaClient


@pytest.fixture
def solana_client() -> SolanaClient:
    client = SolanaClient(rpc_url="http://localhost:8899")
    client.client = MagicMock()
    return client


def account_response(data: bytes, owner):
    response = MagicMock()
    response.value.data = data
    response.value.owner = owner
    response.value.lamports = 1_000_000
    response.value.executable = False
    response.value.rent_epoch = 0
    return response


def test_get_race_state_decodes_account(solana_client, mint, program_id):
    buffer = bytearray(RACE_ACCOUNT_SIZE)
    HorseRace.new(mint).pack_into(buffer)
    solana_client.client.get_account_info.return_value = account_response(bytes(buffer), program_id)

    race = solana_client.get_race_state(Keypair().pubkey())

    assert race.state == GameState.WAITING_FOR_PLAYERS
    assert race.token_mint == mint


def test_get_race_state_missing_account(solana_client):
    response = MagicMock()
    response.value = None
    solana_client.client.get_account_info.return_value = response

    assert solana_client.get_race_state(Keypair().pubkey()) is None


def test_get_race_state_corrupt_account(solana_client, program_id):
    solana_client.client.get_account_info.return_value = account_response(b"\x07", program_id)

    with pytest.raises(CorruptRaceState):
        solana_client.get_race_state(Keypair().pubkey())


def test_rpc_failure_is_not_a_missing_account(solana_client):
    solana_client.client.get_account_info.side_effect = RuntimeError("connection refused")

    with pytest.raises(SolanaRpcError):
        solana_client.get_race_state(Keypair().pubkey())


def test_token_balance_rpc_failure(solana_client):
    solana_client.client.get_token_account_balance.side_effect = RuntimeError("timeout")

    with pytest.raises(SolanaRpcError):
        solana_client.get_token_balance(Keypair().pubkey())


def test_get_token_balance(solana_client):
    response = MagicMock()
    response.value.amount = "30000"
    solana_client.client.get_token_account_balance.return_value = response

    assert solana_client.get_token_balance(Keypair().pubkey()) == 30_000
