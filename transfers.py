"""
Decoding and ranking of ERC20 Transfer logs.

The Transfer layout is declared once as TRANSFER_EVENT and validated when the
module is imported. Raw logs are turned into TransferRecords, counted per
address and ranked by how many transfers each address took part in.
"""
import logging
import re
from collections import Counter
from dataclasses import dataclass

from eth_abi import decode, is_encodable_type
from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from web3 import Web3

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_MAX_INDEXED = 3  # topic 0 is the signature hash


class ScanError(Exception):
    """Base class for failures of one scan over a block range."""


class SchemaError(ScanError):
    pass


class NoTransfersError(ScanError):
    pass


@dataclass(frozen=True)
class EventField:
    name: str
    type: str
    indexed: bool = False


@dataclass(frozen=True)
class EventSchema:
    name: str
    fields: tuple

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(f.type for f in self.fields)})"

    @property
    def topic(self) -> str:
        return Web3.to_hex(Web3.keccak(text=self.signature))

    @property
    def indexed_fields(self):
        return tuple(f for f in self.fields if f.indexed)

    @property
    def data_fields(self):
        return tuple(f for f in self.fields if not f.indexed)

    @property
    def data_types(self):
        return [f.type for f in self.data_fields]

    @property
    def topic_count(self) -> int:
        return 1 + len(self.indexed_fields)

    def validate(self):
        if not _IDENTIFIER.match(self.name or ""):
            raise SchemaError(f"invalid event name {self.name!r}")
        if not self.fields:
            raise SchemaError(f"event {self.name} declares no fields")

        names = [f.name for f in self.fields]
        if len(set(names)) != len(names):
            raise SchemaError(f"event {self.name} has duplicate field names: {names}")
        for f in self.fields:
            if not _IDENTIFIER.match(f.name or ""):
                raise SchemaError(f"invalid field name {f.name!r} in {self.name}")
            if not is_encodable_type(f.type):
                raise SchemaError(f"unknown ABI type {f.type!r} for {self.name}.{f.name}")

        if len(self.indexed_fields) > _MAX_INDEXED:
            raise SchemaError(
                f"event {self.name} has {len(self.indexed_fields)} indexed fields, "
                f"at most {_MAX_INDEXED} allowed"
            )
        return self


TRANSFER_EVENT = EventSchema(
    name="Transfer",
    fields=(
        EventField("from", "address", indexed=True),
        EventField("to", "address", indexed=True),
        EventField("value", "uint256"),
    ),
).validate()

TRANSFER_TOPIC = TRANSFER_EVENT.topic


@dataclass(frozen=True)
class TransferRecord:
    sender: str
    receiver: str
    value: int


@dataclass(frozen=True)
class AddressMetric:
    address: str
    count: int

    def to_dict(self):
        return {"address": self.address, "count": self.count}


def topic_to_address(topic) -> str:
    raw = HexBytes(topic)
    if len(raw) != 32:
        raise ValueError(f"address topic must be 32 bytes, got {len(raw)}")
    return Web3.to_checksum_address("0x" + raw.hex()[-40:])


def _log_ref(raw_log):
    tx = raw_log.get("transactionHash")
    if tx is None:
        return "?"
    tx = Web3.to_hex(HexBytes(tx))
    index = raw_log.get("logIndex")
    return tx if index is None else f"{tx}#{index}"


def decode_log(raw_log):
    """
    Decode one raw log into a TransferRecord.

    Returns None for logs that are not a standard ERC20 Transfer (wrong topic
    count or no data, e.g. ERC721 transfers) and for logs whose payload
    cannot be decoded.
    """
    topics = raw_log.get("topics") or []
    if len(topics) != TRANSFER_EVENT.topic_count:
        return None

    try:
        data = HexBytes(raw_log.get("data") or b"")
        if not data:
            return None
        sender = topic_to_address(topics[1])
        receiver = topic_to_address(topics[2])
        (value,) = decode(TRANSFER_EVENT.data_types, bytes(data))
    except (DecodingError, ValueError) as e:
        logger.warning(f"Error unpacking Transfer log {_log_ref(raw_log)}: {e}")
        return None

    return TransferRecord(sender=sender, receiver=receiver, value=value)


def decode_logs(raw_logs):
    records = []
    for raw_log in raw_logs:
        record = decode_log(raw_log)
        if record is not None:
            records.append(record)
    return records


def count_addresses(records) -> Counter:
    counts = Counter()
    for record in records:
        counts[record.sender] += 1
        counts[record.receiver] += 1
    return counts


def sort_addresses_by_count(counts):
    if not counts:
        raise NoTransfersError("no logs in map to sort")

    metrics = [
        AddressMetric(address=address, count=count)
        for address, count in counts.items()
        if address != ZERO_ADDRESS
    ]
    if not metrics:
        raise NoTransfersError("only the zero address took part in transfers")

    # stable: equal counts keep first-seen order
    metrics.sort(key=lambda m: m.count, reverse=True)
    return metrics


def rank_transfers(records):
    return sort_addresses_by_count(count_addresses(records))
