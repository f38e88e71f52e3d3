# -*- coding: utf-8 -*-

# Checksums for CDN artifacts, and the .checks.txt/.headers.txt sidecars written beside them.

import os
import zlib
import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from hashlib import md5, sha1, sha256

log = logging.getLogger(__name__)

HEADER_FILE_SUFFIX = '.headers.txt'
HASHES_FILE_SUFFIX = '.checks.txt'

LAST_MODIFIED_LABEL = 'Last-Modified'

SIZE_LABEL   = 'Size'
CRC32_LABEL  = 'CRC32'
MD5_LABEL    = 'MD5'
SHA1_LABEL   = 'SHA1'
SHA256_LABEL = 'SHA256'

BUF_SIZE = 0x10000


class hash_collection:
    __slots__ = ('size', 'crc32', 'md5', 'sha1', 'sha256')

    def __init__(self, size, crc32, md5, sha1, sha256):
        self.size = size
        self.crc32 = crc32
        self.md5 = md5
        self.sha1 = sha1
        self.sha256 = sha256

    @classmethod
    def from_bytes(cls, data):
        return cls(len(data),
                   '%08x' % (zlib.crc32(data) & 0xFFFFFFFF),
                   md5(data).hexdigest(),
                   sha1(data).hexdigest(),
                   sha256(data).hexdigest())

    @classmethod
    def from_file(cls, fPath):
        crc = 0
        size = 0
        hMd5, hSha1, hSha256 = md5(), sha1(), sha256()
        with open(fPath, 'rb') as f:
            while True:
                buf = f.read(BUF_SIZE)
                if not buf:
                    break
                size += len(buf)
                crc = zlib.crc32(buf, crc)
                hMd5.update(buf)
                hSha1.update(buf)
                hSha256.update(buf)
        return cls(size, '%08x' % (crc & 0xFFFFFFFF), hMd5.hexdigest(), hSha1.hexdigest(), hSha256.hexdigest())

    def write(self, fPath):
        with open(fPath, 'w') as f:
            f.write('%s: %s\n' % (SIZE_LABEL, '' if self.size is None else self.size))
            f.write('%s: %s\n' % (CRC32_LABEL, self.crc32 or ''))
            f.write('%s: %s\n' % (MD5_LABEL, self.md5 or ''))
            f.write('%s: %s\n' % (SHA1_LABEL, self.sha1 or ''))
            f.write('%s: %s\n' % (SHA256_LABEL, self.sha256 or ''))

    def __eq__(self, other):
        if not isinstance(other, hash_collection):
            return NotImplemented
        return all(getattr(self, s) == getattr(other, s) for s in self.__slots__)

    def __repr__(self):
        return 'hash_collection(size=%s, crc32=%s)' % (self.size, self.crc32)


def file_crc32(fPath):
    crc = 0
    with open(fPath, 'rb') as f:
        while True:
            buf = f.read(BUF_SIZE)
            if not buf:
                break
            crc = zlib.crc32(buf, crc)
    return '%08x' % (crc & 0xFFFFFFFF)

def sha1_file(fPath):
    h = sha1()
    with open(fPath, 'rb') as f:
        while True:
            buf = f.read(BUF_SIZE)
            if not buf:
                break
            h.update(buf)
    return h.hexdigest()

def parse_hashes(text):
    values = {}
    for line in text.splitlines():
        label, sep, value = line.partition(':')
        if not sep:
            continue
        values[label.strip()] = value.strip()

    size = values.get(SIZE_LABEL)
    try:
        size = int(size) if size else None
    except ValueError:
        size = None
    return hash_collection(size,
                           values.get(CRC32_LABEL, ''),
                           values.get(MD5_LABEL, ''),
                           values.get(SHA1_LABEL, ''),
                           values.get(SHA256_LABEL, ''))

def read_hashes(fPath):
    # Read-through cache over <file>.checks.txt, rewritten when missing or stale
    checksPath = fPath + HASHES_FILE_SUFFIX
    if not os.path.exists(checksPath):
        if not os.path.exists(fPath):
            log.error('Unable to read hashes from \'%s\', and \'%s\' does not exist either.', checksPath, fPath)
            return None
        log.warning('No hash file at \'%s\'. Recalculating from \'%s\'.', checksPath, fPath)
        hashes = hash_collection.from_file(fPath)
        hashes.write(checksPath)
        return hashes

    with open(checksPath, 'r') as f:
        hashes = parse_hashes(f.read())

    if os.path.exists(fPath):
        live = file_crc32(fPath)
        if live != hashes.crc32:
            log.error('CRC32 from \'%s\' does not match the calculated CRC32 of \'%s\' (%s != %s). Recalculating everything.',
                      checksPath, fPath, hashes.crc32, live)
            hashes = hash_collection.from_file(fPath)
            hashes.write(checksPath)
    return hashes

def parse_last_modified(text):
    for line in text.splitlines():
        label, sep, value = line.partition(':')
        if not sep or label.strip() != LAST_MODIFIED_LABEL:
            continue
        try:
            modTime = parsedate_to_datetime(value.strip())
        except (TypeError, ValueError):
            log.warning('Unparseable %s value: \'%s\'', LAST_MODIFIED_LABEL, value.strip())
            return None
        # '-0000' gives a naive datetime
        if modTime.tzinfo is None:
            return modTime.replace(tzinfo=timezone.utc)
        return modTime.astimezone(timezone.utc)
    return None

def file_mod_time(fPath):
    # Upload date from the response headers, falling back to the filesystem
    headersPath = fPath + HEADER_FILE_SUFFIX
    if os.path.exists(headersPath):
        with open(headersPath, 'r') as f:
            modTime = parse_last_modified(f.read())
        if modTime is not None:
            return modTime
    log.debug('Unable to get the upload date from \'%s\', using the file modification time.', headersPath)
    if not os.path.exists(fPath):
        return None
    return datetime.fromtimestamp(os.path.getmtime(fPath), timezone.utc)
