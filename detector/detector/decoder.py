from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import BinaryIO, Dict, Iterator

import numpy as np
import pymseed
from obspy import UTCDateTime

from .models import RawBlock
from .utils import parse_sid

logger = logging.getLogger(__name__)

# SEED data encoding tags (blockette 1000 / miniSEED 3 header).
ENCODING_INT16 = 1
ENCODING_INT32 = 3
ENCODING_FLOAT32 = 4
ENCODING_FLOAT64 = 5
ENCODING_STEIM1 = 10
ENCODING_STEIM2 = 11

INTEGER_ENCODINGS = frozenset({ENCODING_INT16, ENCODING_INT32, ENCODING_STEIM1, ENCODING_STEIM2})
FLOAT_ENCODINGS = frozenset({ENCODING_FLOAT32, ENCODING_FLOAT64})
SUPPORTED_ENCODINGS = INTEGER_ENCODINGS | FLOAT_ENCODINGS

# What libmseed raises for a corrupt or truncated record.
LIBMSEED_ERRORS = (pymseed.MiniSEEDError, ValueError)


class BlockDecodeError(ValueError):
    """A single waveform block could not be decoded."""


class MalformedBlockError(BlockDecodeError):
    pass


class UnsupportedEncodingError(BlockDecodeError):
    def __init__(self, encoding: int):
        super().__init__(f"Unsupported data encoding {encoding}")
        self.encoding = encoding


@dataclass
class DecodeStats:
    decoded: int = 0
    malformed: int = 0
    unsupported: int = 0

    @property
    def skipped(self) -> int:
        return self.malformed + self.unsupported


def validate_record_length(record_length: int) -> None:
    if record_length < 256 or (record_length & (record_length - 1)) != 0:
        raise ValueError(f"record_length must be a power of two >= 256, got {record_length}")


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    chunks = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def _parse_record(data: bytes, unpack_data: bool, validate_crc: bool) -> Dict:
    """Parse the first record in ``data`` with libmseed and copy out what we need."""
    try:
        for msr in pymseed.MS3Record.from_buffer(
            data,
            unpack_data=unpack_data,
            validate_crc=validate_crc,
        ):
            # The reader reuses record memory, so samples must be copied here.
            samples = None
            if unpack_data:
                samples = np.array(msr.np_datasamples, dtype=np.float64)
            return {
                "sourceid": msr.sourceid,
                "starttime_ns": msr.starttime,
                "samprate": msr.samprate,
                "encoding": msr.encoding,
                "reclen": msr.reclen,
                "samples": samples,
            }
    except LIBMSEED_ERRORS as exc:
        raise MalformedBlockError(f"libmseed rejected block: {exc}") from exc
    raise MalformedBlockError("No miniSEED record found in block")


class BlockDecoder:
    """Decode fixed-size miniSEED records from a caller-owned byte stream.

    The stream is read sequentially and never closed. Corrupted records and
    records with an unknown encoding are skipped; everything else is yielded as
    a ``RawBlock`` carrying the station coordinates supplied by the caller.
    """

    def __init__(
        self,
        station_latitude: float,
        station_longitude: float,
        record_length: int = 512,
        validate_crc: bool = True,
    ):
        validate_record_length(record_length)
        self.latitude = float(station_latitude)
        self.longitude = float(station_longitude)
        self.record_length = record_length
        self.validate_crc = validate_crc
        self.stats = DecodeStats()

    def decode_block(self, data: bytes) -> RawBlock:
        header = _parse_record(data, unpack_data=False, validate_crc=self.validate_crc)
        encoding = int(header["encoding"])
        if encoding not in SUPPORTED_ENCODINGS:
            raise UnsupportedEncodingError(encoding)
        if header["reclen"] != len(data):
            raise MalformedBlockError(
                f"Record length {header['reclen']} does not match block size {len(data)}"
            )

        parsed = parse_sid(header["sourceid"])
        if parsed is None:
            raise MalformedBlockError(f"Unparseable source id {header['sourceid']!r}")
        net, sta, loc, chan = parsed

        samprate = float(header["samprate"])
        if samprate <= 0:
            raise MalformedBlockError(f"Invalid sampling rate {samprate}")

        record = _parse_record(data, unpack_data=True, validate_crc=self.validate_crc)
        samples = record["samples"]
        if samples is None or samples.size == 0:
            raise MalformedBlockError("Block carries no samples")

        return RawBlock(
            samples=samples,
            sampling_rate=samprate,
            starttime=UTCDateTime(ns=int(header["starttime_ns"])),
            network=net,
            station=sta,
            location=loc,
            channel=chan,
            latitude=self.latitude,
            longitude=self.longitude,
            encoding=encoding,
        )

    def iter_blocks(self, stream: BinaryIO) -> Iterator[RawBlock]:
        offset = 0
        while True:
            data = _read_exact(stream, self.record_length)
            if not data:
                return
            if len(data) < self.record_length:
                self.stats.malformed += 1
                logger.warning(
                    "Truncated trailing block skipped: offset=%d bytes=%d expected=%d",
                    offset,
                    len(data),
                    self.record_length,
                )
                return

            try:
                block = self.decode_block(data)
            except UnsupportedEncodingError as exc:
                self.stats.unsupported += 1
                logger.error("Block dropped: offset=%d encoding=%d", offset, exc.encoding)
            except MalformedBlockError as exc:
                self.stats.malformed += 1
                logger.warning("Corrupted block skipped: offset=%d reason=%s", offset, exc)
            else:
                self.stats.decoded += 1
                logger.debug(
                    "Decoded block: offset=%d id=%s.%s.%s.%s start=%s samples=%d rate=%.3f",
                    offset,
                    block.network,
                    block.station,
                    block.location,
                    block.channel,
                    block.starttime,
                    block.samples.size,
                    block.sampling_rate,
                )
                yield block
            offset += len(data)
