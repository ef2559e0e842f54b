"""Calldata for ERC-2771 forwarders (OpenZeppelin v5 ``ERC2771Forwarder``)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from eth_abi import encode
from eth_utils import decode_hex, encode_hex, function_signature_to_4byte_selector, to_checksum_address

if TYPE_CHECKING:
    from ..queue.domain import ForwardRequest

FORWARD_REQUEST_DATA_TYPE: Final[str] = "(address,address,uint256,uint256,uint48,bytes,bytes)"
EXECUTE_SIGNATURE: Final[str] = f"execute({FORWARD_REQUEST_DATA_TYPE})"
EXECUTE_SELECTOR: Final[bytes] = function_signature_to_4byte_selector(EXECUTE_SIGNATURE)


def build_forwarder_execute_calldata(forward_request: ForwardRequest, signature: str) -> str:
    """Encode ``execute(ForwardRequestData)`` for a signed forward request.

    ``ForwardRequestData`` carries the signature inline and has no nonce: the
    forwarder reads the nonce from its own storage when verifying.

    Returns
    -------
    str
        0x-prefixed calldata.

    Raises
    ------
    ValueError
        If an address, a numeric field, or a hex field is malformed.
    """
    request_data = (
        to_checksum_address(forward_request.from_address),
        to_checksum_address(forward_request.to),
        int(forward_request.value),
        int(forward_request.gas),
        int(forward_request.deadline),
        decode_hex(forward_request.data),
        decode_hex(signature),
    )
    encoded_args = encode([FORWARD_REQUEST_DATA_TYPE], [request_data])
    return encode_hex(EXECUTE_SELECTOR + encoded_args)
