from unittest.mock import MagicMock

import pytest

from services.token_metadata import TokenMetadataClient


def _fake_web3(decimals=6):
    web3 = MagicMock()
    web3.to_checksum_address.side_effect = lambda address: address.upper()
    web3.eth.contract.return_value.functions.decimals.return_value.call.return_value = decimals
    return web3


@pytest.mark.asyncio
async def test_decimals_read_once_per_token():
    web3 = _fake_web3(decimals=8)
    client = TokenMetadataClient(web3=web3)

    assert await client.get_decimals("0xabc") == 8
    assert await client.get_decimals("0xABC") == 8

    assert web3.eth.contract.call_count == 1
    assert web3.eth.contract.call_args.kwargs["address"] == "0XABC"


@pytest.mark.asyncio
async def test_rpc_errors_propagate():
    web3 = _fake_web3()
    web3.eth.contract.return_value.functions.decimals.return_value.call.side_effect = RuntimeError("reverted")
    client = TokenMetadataClient(web3=web3)

    with pytest.raises(RuntimeError):
        await client.get_decimals("0xabc")


def test_requires_rpc_url_or_web3():
    with pytest.raises(ValueError):
        TokenMetadataClient()
