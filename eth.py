#!/usr/bin/env python3
import argparse
import logging
import sys
from dataclasses import dataclass, field

from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import HTTPError, Timeout
from urllib3.exceptions import ProtocolError
from web3 import Web3
from web3.exceptions import Web3Exception

from config import LOG_LEVELS, ConfigError, load_config
from transfers import (
    TRANSFER_EVENT,
    TRANSFER_TOPIC,
    ScanError,
    decode_logs,
    rank_transfers,
)

logger = logging.getLogger(__name__)

# ─── SCAN ───────────────────────────────────────────────────────
# Width of the scanned window, in blocks, ending at the chain head
WINDOW_BLOCKS = 100
# Transport and node errors that fail a query
CLIENT_ERRORS = (Web3Exception, HTTPError, RequestsConnectionError, Timeout, ProtocolError)
# ────────────────────────────────────────────────────────────────


class QueryError(ScanError):
    pass


class RPCConnectionError(Exception):
    pass


@dataclass(frozen=True)
class BlockRange:
    start: int
    end: int

    def __len__(self):
        return self.end - self.start + 1


@dataclass
class Scan:
    block_range: BlockRange
    logs: int = 0
    transfers: int = 0
    metrics: list = field(default_factory=list)


def connect(config):
    w3 = Web3(Web3.HTTPProvider(config.rpc_url))
    if not w3.is_connected():
        # never echo rpc_url, it embeds the API key
        raise RPCConnectionError(f"Could not connect to RPC at {config.rpc_host}")
    return w3


def block_window(w3, width=WINDOW_BLOCKS) -> BlockRange:
    try:
        head = w3.eth.get_block("latest")["number"]
    except CLIENT_ERRORS as e:
        raise QueryError(f"failed to retrieve the latest block header: {e}") from e
    return BlockRange(start=max(head - (width - 1), 0), end=head)


def fetch_transfer_logs(w3, block_range):
    """
    Fetch every Transfer log in `block_range` with a single eth_getLogs,
    from any contract. No chunking and no retry: a failed query fails the scan.
    """
    try:
        return w3.eth.get_logs({
            "fromBlock": block_range.start,
            "toBlock":   block_range.end,
            "topics":    [TRANSFER_TOPIC],
        })
    except CLIENT_ERRORS as e:
        raise QueryError(
            f"failed to filter logs for blocks {block_range.start}-{block_range.end}: {e}"
        ) from e


def scan(w3) -> Scan:
    block_range = block_window(w3)
    logger.info(f"🔍 Scanning {TRANSFER_EVENT.signature} events in blocks {block_range.start}-{block_range.end}")

    logs = fetch_transfer_logs(w3, block_range)
    logger.info(f"⚡ Retrieved {len(logs)} logs")

    records = decode_logs(logs)
    skipped = len(logs) - len(records)
    if skipped:
        logger.info(f"Skipped {skipped} undecodable or non-ERC20 logs")

    result = Scan(block_range=block_range, logs=len(logs), transfers=len(records))
    result.metrics = rank_transfers(records)
    logger.info(f"🏆 Ranked {len(result.metrics)} distinct addresses")
    return result


def format_metrics(metrics, limit):
    for metric in metrics[:max(limit, 0)]:
        yield f"address {metric.address} used ERC20 {metric.count} times"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Rank the addresses most active in ERC20 transfers over the last "
                    f"{WINDOW_BLOCKS} blocks."
    )
    parser.add_argument("--top", type=int, default=None,
                        help="number of addresses to print (default: TOP_N or 5)")
    parser.add_argument("--log-level", default=None, type=str.upper, choices=LOG_LEVELS,
                        help="logging level (default: LOG_LEVEL or INFO)")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    try:
        config = load_config()
    except ConfigError as e:
        logging.basicConfig(level=(args.log_level or "INFO").upper())
        logger.critical(f"❌ {e}")
        return 1

    logging.basicConfig(level=(args.log_level or config.log_level).upper())
    top = config.top_n if args.top is None else args.top

    try:
        w3 = connect(config)
    except RPCConnectionError as e:
        logger.critical(f"❌ {e}")
        return 1

    metrics = []
    try:
        metrics = scan(w3).metrics
    except ScanError as e:
        logger.error(f"error in scan: {e}")

    for line in format_metrics(metrics, top):
        print(line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
